"""Shared fixtures and in-memory collaborators for site_deploy tests."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from botocore.exceptions import ClientError

from site_deploy.aws.base import (
    CdnManager,
    CertificateManager,
    DiscoveredResource,
    DistributionInfo,
    DistributionSettings,
    DnsManager,
    HostedZoneInfo,
    ObjectStoreManager,
    ResourceOutcome,
    matches_managed_tags,
)
from site_deploy.config.models import SiteConfig
from site_deploy.deployer.file_scanner import FileInfo
from site_deploy.orchestrator.results import DeploymentObserver
from site_deploy.state.manager import StateManager
from site_deploy.state.models import DnsRecord
from site_deploy.utils.errors import ProvisioningError, ResourceNotFoundError

Call = Tuple


def filter_managed(
    resources: List[DiscoveredResource], app: Optional[str], environment: Optional[str]
) -> List[DiscoveredResource]:
    return [r for r in resources if matches_managed_tags(r.tags, app, environment)]


def build_client_error(code: str, operation: str = "Operation", message: str = "error") -> ClientError:
    """Build a botocore ClientError with the given error code."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeObjectStore(ObjectStoreManager):
    """Bucket store kept in memory."""

    def __init__(self, calls: List[Call]):
        self.calls = calls
        self.buckets: Dict[str, Dict[str, str]] = {}
        self.fail_uploads: Dict[str, Exception] = {}
        self.delete_objects_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.managed: List[DiscoveredResource] = []

    def exists(self, bucket_name: str) -> bool:
        self.calls.append(("s3.exists", bucket_name))
        return bucket_name in self.buckets

    def create(self, bucket_name: str, region: str) -> ResourceOutcome:
        self.calls.append(("s3.create", bucket_name, region))
        if bucket_name in self.buckets:
            return ResourceOutcome.ALREADY_PRESENT
        self.buckets[bucket_name] = {}
        return ResourceOutcome.CREATED

    def configure_website(self, bucket_name, index_document, error_document=None) -> None:
        self.calls.append(("s3.configure_website", bucket_name, index_document, error_document))

    def set_public_read_policy(self, bucket_name: str) -> None:
        self.calls.append(("s3.set_public_read_policy", bucket_name))

    def tag(self, bucket_name: str, tags: Dict[str, str]) -> None:
        self.calls.append(("s3.tag", bucket_name))

    def upload_file(self, bucket_name: str, file: FileInfo, gzip_enabled: bool = True) -> None:
        self.calls.append(("s3.upload_file", file.key))
        if file.key in self.fail_uploads:
            raise self.fail_uploads[file.key]
        self.buckets[bucket_name][file.key] = file.hash

    def delete_objects(self, bucket_name: str, keys: List[str]) -> None:
        self.calls.append(("s3.delete_objects", tuple(keys)))
        if self.delete_objects_error is not None:
            raise self.delete_objects_error
        for key in keys:
            self.buckets[bucket_name].pop(key, None)

    def delete(self, bucket_name: str) -> int:
        self.calls.append(("s3.delete", bucket_name))
        if self.delete_error is not None:
            raise self.delete_error
        if bucket_name not in self.buckets:
            raise ResourceNotFoundError(f"Bucket {bucket_name} not found")
        return len(self.buckets.pop(bucket_name))

    def website_url(self, bucket_name: str, region: str) -> str:
        return f"http://{bucket_name}.s3-website-{region}.amazonaws.com"

    def find_managed(self, app=None, environment=None) -> List[DiscoveredResource]:
        self.calls.append(("s3.find_managed", app, environment))
        return filter_managed(self.managed, app, environment)


class FakeCdn(CdnManager):
    """CloudFront distributions kept in memory."""

    def __init__(self, calls: List[Call]):
        self.calls = calls
        self.distributions: Dict[str, DistributionInfo] = {}
        self.invalidations: List[List[str]] = []
        self.delete_error: Optional[Exception] = None
        self.managed: List[DiscoveredResource] = []
        self._counter = 0

    def exists(self, distribution_id: str) -> bool:
        self.calls.append(("cloudfront.exists", distribution_id))
        return distribution_id in self.distributions

    def get(self, distribution_id: str) -> Optional[DistributionInfo]:
        self.calls.append(("cloudfront.get", distribution_id))
        return self.distributions.get(distribution_id)

    def create(self, settings: DistributionSettings) -> DistributionInfo:
        self._counter += 1
        distribution_id = f"E{self._counter:04d}"
        self.calls.append(("cloudfront.create", distribution_id))
        info = DistributionInfo(
            distribution_id=distribution_id,
            domain_name=f"d{self._counter}.cloudfront.net",
            status="InProgress",
            enabled=True,
            aliases=list(settings.aliases or []),
        )
        self.distributions[distribution_id] = info
        return info

    def update(self, distribution_id: str, settings: DistributionSettings) -> DistributionInfo:
        self.calls.append(("cloudfront.update", distribution_id, settings.enabled))
        if distribution_id not in self.distributions:
            raise ResourceNotFoundError(f"Distribution {distribution_id} not found")
        info = self.distributions[distribution_id]
        if settings.enabled is not None:
            info.enabled = settings.enabled
        return info

    def wait_until_deployed(self, distribution_id: str) -> None:
        self.calls.append(("cloudfront.wait_until_deployed", distribution_id))
        if distribution_id in self.distributions:
            self.distributions[distribution_id].status = "Deployed"

    def delete(self, distribution_id: str) -> None:
        self.calls.append(("cloudfront.delete", distribution_id))
        if self.delete_error is not None:
            raise self.delete_error
        if distribution_id not in self.distributions:
            raise ResourceNotFoundError(f"Distribution {distribution_id} not found")
        if self.distributions[distribution_id].enabled:
            raise ProvisioningError("Distribution must be disabled before deletion")
        del self.distributions[distribution_id]

    def invalidate(self, distribution_id: str, paths: List[str]) -> str:
        self.calls.append(("cloudfront.invalidate", distribution_id, tuple(paths)))
        self.invalidations.append(list(paths))
        return f"I{len(self.invalidations)}"

    def find_managed(self, app=None, environment=None) -> List[DiscoveredResource]:
        self.calls.append(("cloudfront.find_managed", app, environment))
        return filter_managed(self.managed, app, environment)


class FakeCertificates(CertificateManager):
    """ACM certificates kept in memory."""

    def __init__(self, calls: List[Call]):
        self.calls = calls
        self.certificates: Dict[str, str] = {}
        self.existing: Dict[str, str] = {}
        self.pending: Dict[str, str] = {}
        self.in_use_failures = 0
        self.managed: List[DiscoveredResource] = []

    def find(self, domain: str) -> Optional[str]:
        self.calls.append(("acm.find", domain))
        return self.existing.get(domain)

    def find_pending(self, domain: str, tags: Dict[str, str]) -> Optional[str]:
        self.calls.append(("acm.find_pending", domain))
        return self.pending.get(domain)

    def request(self, domain, alternative_names=None, tags=None) -> str:
        arn = f"arn:aws:acm:us-east-1:123456789012:certificate/{len(self.certificates) + 1}"
        self.calls.append(("acm.request", domain))
        self.certificates[arn] = domain
        return arn

    def get_validation_records(self, certificate_arn: str) -> List[DnsRecord]:
        self.calls.append(("acm.get_validation_records", certificate_arn))
        domain = self.certificates[certificate_arn]
        return [DnsRecord(name=f"_abc.{domain}", type="CNAME", value="_xyz.acm-validations.aws")]

    def wait_until_issued(self, certificate_arn: str) -> None:
        self.calls.append(("acm.wait_until_issued", certificate_arn))

    def delete(self, certificate_arn: str) -> None:
        self.calls.append(("acm.delete", certificate_arn))
        if self.in_use_failures:
            self.in_use_failures -= 1
            raise build_client_error("ResourceInUseException", "DeleteCertificate")
        if certificate_arn not in self.certificates:
            raise ResourceNotFoundError(f"Certificate {certificate_arn} not found")
        del self.certificates[certificate_arn]

    def find_managed(self, app=None, environment=None) -> List[DiscoveredResource]:
        self.calls.append(("acm.find_managed", app, environment))
        return filter_managed(self.managed, app, environment)


class FakeDns(DnsManager):
    """Route53 hosted zones kept in memory."""

    def __init__(self, calls: List[Call]):
        self.calls = calls
        self.zones: Dict[str, HostedZoneInfo] = {}
        self.records: Dict[str, List[DnsRecord]] = {}
        self.managed: List[DiscoveredResource] = []

    def add_zone(self, name: str, hosted_zone_id: str = "Z0EXISTING") -> HostedZoneInfo:
        zone = HostedZoneInfo(hosted_zone_id=hosted_zone_id, name=name, name_servers=["ns-1.example"])
        self.zones[hosted_zone_id] = zone
        self.records[hosted_zone_id] = []
        return zone

    def find_zone(self, domain: str) -> Optional[HostedZoneInfo]:
        self.calls.append(("route53.find_zone", domain))
        for zone in self.zones.values():
            if domain == zone.name or domain.endswith(f".{zone.name}"):
                return zone
        return None

    def create(self, domain: str, tags=None) -> HostedZoneInfo:
        self.calls.append(("route53.create", domain))
        return self.add_zone(domain, hosted_zone_id=f"Z0CREATED{len(self.zones) + 1}")

    def change_records(self, hosted_zone_id: str, records: List[DnsRecord]) -> None:
        self.calls.append(("route53.change_records", hosted_zone_id, len(records)))
        existing = self.records[hosted_zone_id]
        for record in records:
            existing[:] = [r for r in existing if (r.name, r.type) != (record.name, record.type)]
            existing.append(record)

    def delete_records(self, hosted_zone_id: str, records: List[DnsRecord]) -> None:
        self.calls.append(("route53.delete_records", hosted_zone_id, len(records)))
        if hosted_zone_id not in self.zones:
            raise ResourceNotFoundError(f"Hosted zone {hosted_zone_id} not found")
        doomed = {(r.name, r.type) for r in records}
        self.records[hosted_zone_id] = [
            r for r in self.records[hosted_zone_id] if (r.name, r.type) not in doomed
        ]

    def delete_zone(self, hosted_zone_id: str) -> None:
        self.calls.append(("route53.delete_zone", hosted_zone_id))
        if hosted_zone_id not in self.zones:
            raise ResourceNotFoundError(f"Hosted zone {hosted_zone_id} not found")
        del self.zones[hosted_zone_id]
        del self.records[hosted_zone_id]

    def find_managed(self, app=None, environment=None) -> List[DiscoveredResource]:
        self.calls.append(("route53.find_managed", app, environment))
        return filter_managed(self.managed, app, environment)


class RecordingObserver(DeploymentObserver):
    """Observer that keeps every notification."""

    def __init__(self):
        self.resources = []
        self.changes = None
        self.uploads = []
        self.retries = []

    def on_resource(self, resource_id, status, message) -> None:
        self.resources.append((resource_id, status))

    def on_changes(self, changes) -> None:
        self.changes = changes

    def on_file_uploaded(self, completed, total, result) -> None:
        self.uploads.append((completed, total, result.key))

    def on_retry(self, operation, attempt, error, delay) -> None:
        self.retries.append((operation, attempt, delay))


@pytest.fixture
def client_error():
    """Factory for botocore ClientError instances."""
    return build_client_error


@pytest.fixture
def calls() -> List[Call]:
    """Shared call log for the fake collaborators."""
    return []


@pytest.fixture
def object_store(calls) -> FakeObjectStore:
    return FakeObjectStore(calls)


@pytest.fixture
def cdn(calls) -> FakeCdn:
    return FakeCdn(calls)


@pytest.fixture
def certificates(calls) -> FakeCertificates:
    return FakeCertificates(calls)


@pytest.fixture
def dns(calls) -> FakeDns:
    return FakeDns(calls)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """Project directory with a small built site in dist/."""
    dist = tmp_path / "dist"
    (dist / "css").mkdir(parents=True)
    (dist / "index.html").write_text("<h1>home</h1>")
    (dist / "about.html").write_text("<h1>about</h1>")
    (dist / "css" / "site.css").write_text("body { color: black; }")
    return tmp_path


@pytest.fixture
def site_config() -> SiteConfig:
    """Bucket-only site configuration."""
    return SiteConfig(
        app="my-site",
        s3={"bucket_name": "my-site-bucket"},
        retry={"max_retries": 2, "initial_delay": 0.01},
    )


@pytest.fixture
def cdn_site_config() -> SiteConfig:
    """Site configuration with CloudFront and a custom domain."""
    return SiteConfig(
        app="my-site",
        s3={"bucket_name": "my-site-bucket"},
        cloudfront={
            "enabled": True,
            "custom_domain": {"domain_name": "www.example.com", "aliases": ["example.com"]},
        },
        retry={"max_retries": 2, "initial_delay": 0.01},
    )


@pytest.fixture
def state_manager(site_dir: Path) -> StateManager:
    return StateManager(site_dir)
