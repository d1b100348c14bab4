"""Per-kind resource tracking on DeploymentState.

Every function is a pure transformation: the given state is never modified
and a new state is returned.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple, Type

from .models import (
    ACMResourceState,
    CloudFrontResourceState,
    DeploymentState,
    ResourceStateModel,
    ResourcesState,
    Route53ResourceState,
    S3ResourceState,
)


class ResourceKind(Enum):
    """The managed resource kinds, in deploy order."""

    S3 = "s3"
    ACM = "acm"
    ROUTE53 = "route53"
    CLOUDFRONT = "cloudfront"


RESOURCE_TYPES: Dict[ResourceKind, Type[ResourceStateModel]] = {
    ResourceKind.S3: S3ResourceState,
    ResourceKind.CLOUDFRONT: CloudFrontResourceState,
    ResourceKind.ACM: ACMResourceState,
    ResourceKind.ROUTE53: Route53ResourceState,
}

# Identifier fields that must be non-empty for a present resource
REQUIRED_FIELDS: Dict[ResourceKind, Tuple[str, ...]] = {
    ResourceKind.S3: ("bucket_name", "region"),
    ResourceKind.CLOUDFRONT: ("distribution_id", "domain_name", "distribution_url"),
    ResourceKind.ACM: ("certificate_arn", "domain_name"),
    ResourceKind.ROUTE53: ("hosted_zone_id", "domain"),
}


def _with_resources(state: DeploymentState, **changes) -> DeploymentState:
    resources = state.resources.model_copy(update=changes)
    return state.model_copy(update={"resources": resources}, deep=True)


def update_resource(
    state: DeploymentState, kind: ResourceKind, resource: ResourceStateModel
) -> DeploymentState:
    """
    Set the state of one resource kind, replacing any previous entry.

    Args:
        state: Current deployment state
        kind: Resource kind to set
        resource: Complete resource state for that kind

    Returns:
        New state with the resource recorded

    Raises:
        TypeError: If resource is not the state type of kind
    """
    expected = RESOURCE_TYPES[kind]
    if not isinstance(resource, expected):
        raise TypeError(
            f"{kind.value} resource must be {expected.__name__}, got {type(resource).__name__}"
        )
    return _with_resources(state, **{kind.value: resource})


def get_resource(state: DeploymentState, kind: ResourceKind) -> Optional[ResourceStateModel]:
    """Get the recorded state of a resource kind, or None."""
    return getattr(state.resources, kind.value)


def has_resource(state: DeploymentState, kind: ResourceKind) -> bool:
    """Check whether a resource kind is recorded."""
    return get_resource(state, kind) is not None


def remove_resource(state: DeploymentState, kind: ResourceKind) -> DeploymentState:
    """Forget a resource kind. Removing an absent kind returns an equal state."""
    return _with_resources(state, **{kind.value: None})


def has_any_resource(state: DeploymentState) -> bool:
    """Check whether any resource kind is recorded."""
    return any(has_resource(state, kind) for kind in ResourceKind)


def clear_resources(state: DeploymentState) -> DeploymentState:
    """Forget all resources."""
    return state.model_copy(update={"resources": ResourcesState()}, deep=True)


# S3

def update_s3_resource(state: DeploymentState, resource: S3ResourceState) -> DeploymentState:
    return update_resource(state, ResourceKind.S3, resource)


def get_s3_resource(state: DeploymentState) -> Optional[S3ResourceState]:
    return state.resources.s3


def has_s3_resource(state: DeploymentState) -> bool:
    return has_resource(state, ResourceKind.S3)


def remove_s3_resource(state: DeploymentState) -> DeploymentState:
    return remove_resource(state, ResourceKind.S3)


# CloudFront

def update_cloudfront_resource(
    state: DeploymentState, resource: CloudFrontResourceState
) -> DeploymentState:
    return update_resource(state, ResourceKind.CLOUDFRONT, resource)


def get_cloudfront_resource(state: DeploymentState) -> Optional[CloudFrontResourceState]:
    return state.resources.cloudfront


def has_cloudfront_resource(state: DeploymentState) -> bool:
    return has_resource(state, ResourceKind.CLOUDFRONT)


def remove_cloudfront_resource(state: DeploymentState) -> DeploymentState:
    return remove_resource(state, ResourceKind.CLOUDFRONT)


# ACM

def update_acm_resource(state: DeploymentState, resource: ACMResourceState) -> DeploymentState:
    return update_resource(state, ResourceKind.ACM, resource)


def get_acm_resource(state: DeploymentState) -> Optional[ACMResourceState]:
    return state.resources.acm


def has_acm_resource(state: DeploymentState) -> bool:
    return has_resource(state, ResourceKind.ACM)


def remove_acm_resource(state: DeploymentState) -> DeploymentState:
    return remove_resource(state, ResourceKind.ACM)


# Route53

def update_route53_resource(
    state: DeploymentState, resource: Route53ResourceState
) -> DeploymentState:
    return update_resource(state, ResourceKind.ROUTE53, resource)


def get_route53_resource(state: DeploymentState) -> Optional[Route53ResourceState]:
    return state.resources.route53


def has_route53_resource(state: DeploymentState) -> bool:
    return has_resource(state, ResourceKind.ROUTE53)


def remove_route53_resource(state: DeploymentState) -> DeploymentState:
    return remove_resource(state, ResourceKind.ROUTE53)


def validate_resource_state(state: DeploymentState) -> Tuple[bool, List[str]]:
    """
    Check that every recorded resource carries its identifiers.

    Advisory only; loading and saving never call this.

    Args:
        state: Deployment state to inspect

    Returns:
        Tuple of (valid, list of problems)
    """
    errors = []
    for kind, fields in REQUIRED_FIELDS.items():
        resource = get_resource(state, kind)
        if resource is None:
            continue
        for field_name in fields:
            if not getattr(resource, field_name):
                errors.append(f"{kind.value}: missing {field_name}")
    return len(errors) == 0, errors


def get_resource_identifiers(state: DeploymentState) -> Dict[str, str]:
    """Map each recorded resource kind to its primary identifier."""
    identifiers = {}
    if state.resources.s3:
        identifiers[ResourceKind.S3.value] = state.resources.s3.bucket_name
    if state.resources.cloudfront:
        identifiers[ResourceKind.CLOUDFRONT.value] = state.resources.cloudfront.distribution_id
    if state.resources.acm:
        identifiers[ResourceKind.ACM.value] = state.resources.acm.certificate_arn
    if state.resources.route53:
        identifiers[ResourceKind.ROUTE53.value] = state.resources.route53.hosted_zone_id
    return identifiers


def format_resource_summary(state: DeploymentState) -> str:
    """Render recorded resources as indented text for status output."""
    resources = state.resources
    if not has_any_resource(state):
        return "No resources deployed"

    lines = []
    if resources.s3:
        lines.append(f"S3 bucket: {resources.s3.bucket_name} ({resources.s3.region})")
        if resources.s3.website_url:
            lines.append(f"  Website: {resources.s3.website_url}")
    if resources.cloudfront:
        lines.append(f"CloudFront: {resources.cloudfront.distribution_id}")
        lines.append(f"  URL: {resources.cloudfront.distribution_url}")
        if resources.cloudfront.aliases:
            lines.append(f"  Aliases: {', '.join(resources.cloudfront.aliases)}")
    if resources.acm:
        lines.append(f"Certificate: {resources.acm.domain_name}")
        lines.append(f"  ARN: {resources.acm.certificate_arn}")
    if resources.route53:
        lines.append(f"Hosted zone: {resources.route53.domain} ({resources.route53.hosted_zone_id})")
        lines.append(f"  Records: {len(resources.route53.records)}")
    return "\n".join(lines)
