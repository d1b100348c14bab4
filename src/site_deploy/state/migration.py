"""Versioned loading of state file dictionaries."""

from typing import Any, Callable, Dict

from .models import STATE_VERSION

LEGACY_VERSION = "0"


def _migrate_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a state file written before the version field existed.

    Legacy files may lack ``files`` and ``lastDeployed`` and carry older
    resource keys (``acm.domain``, ``route53.hostedZoneName``). Unrelated
    fields are left alone and ``version`` stays unset so the next save
    stamps the current version.
    """
    migrated = dict(data)
    migrated.setdefault("files", {})
    if not migrated.get("lastDeployed"):
        migrated.pop("lastDeployed", None)

    resources = dict(migrated.get("resources") or {})
    acm = resources.get("acm")
    if isinstance(acm, dict) and "domainName" not in acm and "domain" in acm:
        acm = dict(acm)
        acm["domainName"] = acm.pop("domain")
        resources["acm"] = acm

    route53 = resources.get("route53")
    if isinstance(route53, dict) and "domain" not in route53 and "hostedZoneName" in route53:
        route53 = dict(route53)
        route53["domain"] = route53.pop("hostedZoneName").rstrip(".")
        resources["route53"] = route53

    # Explicit nulls mean "not provisioned"
    migrated["resources"] = {
        kind: value for kind, value in resources.items() if value is not None
    }
    return migrated


# Keyed by the version a migration upgrades from
MIGRATIONS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    LEGACY_VERSION: _migrate_legacy,
}


def get_state_version(data: Dict[str, Any]) -> str:
    """Get the schema version of a raw state dictionary."""
    return data.get("version") or LEGACY_VERSION


def migrate_state(data: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a raw state dictionary to the current in-memory shape.

    Args:
        data: Parsed state file contents

    Returns:
        Normalized dictionary ready for DeploymentState validation

    Raises:
        ValueError: If the file was written by a newer, unknown schema
    """
    version = get_state_version(data)
    if version == STATE_VERSION:
        return data

    migration = MIGRATIONS.get(version)
    if migration is None:
        raise ValueError(f"Unsupported state version: {version}")
    return migration(data)
