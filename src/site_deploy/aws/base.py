"""Collaborator interfaces for the managed AWS resources.

The orchestrator only talks to these interfaces. Implementations translate
provider responses into the small dataclasses below and raise
ResourceNotFoundError when the addressed resource does not exist.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from site_deploy.deployer.file_scanner import FileInfo
from site_deploy.state.models import DnsRecord, ResourceStateModel

# Tag keys applied to every managed resource
TAG_PREFIX = "site-deploy"
TOOL_NAME = "site-deploy"


def managed_tags(app: str, environment: str) -> Dict[str, str]:
    """Tags identifying resources created by this tool."""
    return {
        f"{TAG_PREFIX}:managed": "true",
        f"{TAG_PREFIX}:app": app,
        f"{TAG_PREFIX}:environment": environment,
        f"{TAG_PREFIX}:tool": TOOL_NAME,
    }


def tags_from_list(tag_list: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """Convert an AWS 'Key'/'Value' tag list to a dict."""
    return {tag["Key"]: tag["Value"] for tag in tag_list}


def matches_managed_tags(
    tags: Dict[str, str], app: Optional[str] = None, environment: Optional[str] = None
) -> bool:
    """Check whether tags mark a resource managed by this tool.

    Args:
        tags: Tags of the resource
        app: Required app tag, or None to accept any app
        environment: Required environment tag, or None to accept any environment
    """
    if tags.get(f"{TAG_PREFIX}:managed") != "true":
        return False
    if app is not None and tags.get(f"{TAG_PREFIX}:app") != app:
        return False
    if environment is not None and tags.get(f"{TAG_PREFIX}:environment") != environment:
        return False
    return True


class ResourceOutcome(Enum):
    """Result of an idempotent create-or-confirm call."""
    CREATED = "created"
    ALREADY_PRESENT = "already_present"


@dataclass
class DistributionSettings:
    """Desired CloudFront distribution configuration.

    For updates, None fields keep their current value.
    """
    origin_bucket: Optional[str] = None
    origin_region: Optional[str] = None
    index_document: Optional[str] = None
    error_document: Optional[str] = None
    aliases: Optional[List[str]] = None
    certificate_arn: Optional[str] = None
    price_class: Optional[str] = None
    default_ttl: Optional[int] = None
    max_ttl: Optional[int] = None
    min_ttl: Optional[int] = None
    ipv6: Optional[bool] = None
    enabled: Optional[bool] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class DistributionInfo:
    """Identifiers and status of a CloudFront distribution."""
    distribution_id: str
    domain_name: str
    status: str
    enabled: bool
    aliases: List[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        return f"https://{self.domain_name}"

    @property
    def is_deployed(self) -> bool:
        return self.status == "Deployed"


@dataclass
class HostedZoneInfo:
    """Identifiers of a Route53 hosted zone."""
    hosted_zone_id: str
    name: str
    name_servers: List[str] = field(default_factory=list)


@dataclass
class DiscoveredResource:
    """A resource found in the account through its managed tags."""
    resource: ResourceStateModel
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def app(self) -> Optional[str]:
        return self.tags.get(f"{TAG_PREFIX}:app")

    @property
    def environment(self) -> Optional[str]:
        return self.tags.get(f"{TAG_PREFIX}:environment")


class ObjectStoreManager(ABC):
    """Bucket lifecycle and object operations."""

    @abstractmethod
    def exists(self, bucket_name: str) -> bool:
        """Check whether the bucket exists and is accessible."""

    @abstractmethod
    def create(self, bucket_name: str, region: str) -> ResourceOutcome:
        """Create the bucket; a bucket already owned by the caller is ALREADY_PRESENT."""

    @abstractmethod
    def configure_website(
        self, bucket_name: str, index_document: str, error_document: Optional[str] = None
    ) -> None:
        """Enable static website hosting."""

    @abstractmethod
    def set_public_read_policy(self, bucket_name: str) -> None:
        """Allow anonymous reads of every object."""

    @abstractmethod
    def tag(self, bucket_name: str, tags: Dict[str, str]) -> None:
        """Replace the bucket tag set."""

    @abstractmethod
    def upload_file(self, bucket_name: str, file: FileInfo, gzip_enabled: bool = True) -> None:
        """Upload one local file under its key."""

    @abstractmethod
    def delete_objects(self, bucket_name: str, keys: List[str]) -> None:
        """Delete the given keys."""

    @abstractmethod
    def delete(self, bucket_name: str) -> int:
        """Empty and delete the bucket.

        Returns:
            Number of objects deleted before the bucket itself

        Raises:
            ResourceNotFoundError: If the bucket does not exist
        """

    @abstractmethod
    def website_url(self, bucket_name: str, region: str) -> str:
        """Static website endpoint URL for the bucket."""

    @abstractmethod
    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        """Buckets tagged as managed by this tool, optionally for one app and environment."""


class CdnManager(ABC):
    """CloudFront distribution lifecycle."""

    @abstractmethod
    def exists(self, distribution_id: str) -> bool:
        """Check whether the distribution exists."""

    @abstractmethod
    def get(self, distribution_id: str) -> Optional[DistributionInfo]:
        """Get distribution details, or None if it does not exist."""

    @abstractmethod
    def create(self, settings: DistributionSettings) -> DistributionInfo:
        """Create a distribution in front of the bucket website endpoint."""

    @abstractmethod
    def update(self, distribution_id: str, settings: DistributionSettings) -> DistributionInfo:
        """Apply the non-None settings to an existing distribution."""

    @abstractmethod
    def wait_until_deployed(self, distribution_id: str) -> None:
        """Block until the distribution status is Deployed."""

    @abstractmethod
    def delete(self, distribution_id: str) -> None:
        """Delete a disabled, deployed distribution.

        Raises:
            ResourceNotFoundError: If the distribution does not exist
        """

    @abstractmethod
    def invalidate(self, distribution_id: str, paths: List[str]) -> str:
        """Create a cache invalidation and return its id."""

    @abstractmethod
    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        """Distributions tagged as managed by this tool."""


class CertificateManager(ABC):
    """ACM certificate lifecycle."""

    @abstractmethod
    def find(self, domain: str) -> Optional[str]:
        """ARN of an issued certificate covering the domain, or None."""

    @abstractmethod
    def find_pending(self, domain: str, tags: Dict[str, str]) -> Optional[str]:
        """ARN of a pending-validation certificate for the domain carrying every tag, or None."""

    @abstractmethod
    def request(
        self, domain: str, alternative_names: Optional[List[str]] = None,
        tags: Optional[Dict[str, str]] = None
    ) -> str:
        """Request a DNS-validated certificate and return its ARN."""

    @abstractmethod
    def get_validation_records(self, certificate_arn: str) -> List[DnsRecord]:
        """DNS records that prove domain ownership."""

    @abstractmethod
    def wait_until_issued(self, certificate_arn: str) -> None:
        """Block until the certificate is issued."""

    @abstractmethod
    def delete(self, certificate_arn: str) -> None:
        """Delete the certificate.

        Raises:
            ResourceNotFoundError: If the certificate does not exist
        """

    @abstractmethod
    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        """Issued or pending certificates tagged as managed by this tool."""


class DnsManager(ABC):
    """Route53 hosted zone and record management."""

    @abstractmethod
    def find_zone(self, domain: str) -> Optional[HostedZoneInfo]:
        """Find the hosted zone serving the domain or one of its parents."""

    @abstractmethod
    def create(self, domain: str, tags: Optional[Dict[str, str]] = None) -> HostedZoneInfo:
        """Create a public hosted zone for the domain."""

    @abstractmethod
    def change_records(self, hosted_zone_id: str, records: List[DnsRecord]) -> None:
        """Upsert records. A record whose value is a CloudFront domain becomes an alias."""

    @abstractmethod
    def delete_records(self, hosted_zone_id: str, records: List[DnsRecord]) -> None:
        """Delete records previously written by change_records; missing records are ignored."""

    @abstractmethod
    def delete_zone(self, hosted_zone_id: str) -> None:
        """Delete all non NS/SOA records and then the zone.

        Raises:
            ResourceNotFoundError: If the zone does not exist
        """

    @abstractmethod
    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        """Hosted zones tagged as managed by this tool.

        Only zones this tool created carry the tags, so every result is a created zone.
        """
