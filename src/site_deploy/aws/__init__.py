"""AWS resource managers used by the deployment orchestrator."""

from .base import (
    CdnManager,
    CertificateManager,
    DiscoveredResource,
    DistributionInfo,
    DistributionSettings,
    DnsManager,
    HostedZoneInfo,
    ObjectStoreManager,
    ResourceOutcome,
    managed_tags,
    matches_managed_tags,
    tags_from_list,
)
from .s3 import S3BucketManager
from .cloudfront import CloudFrontManager
from .acm import ACMManager
from .route53 import Route53Manager

__all__ = [
    "CdnManager",
    "CertificateManager",
    "DistributionInfo",
    "DiscoveredResource",
    "DistributionSettings",
    "DnsManager",
    "HostedZoneInfo",
    "ObjectStoreManager",
    "ResourceOutcome",
    "managed_tags",
    "matches_managed_tags",
    "tags_from_list",
    "S3BucketManager",
    "CloudFrontManager",
    "ACMManager",
    "Route53Manager",
]
