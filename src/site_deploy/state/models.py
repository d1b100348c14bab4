"""State file data models."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

STATE_VERSION = "1.0.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResourceStateModel(BaseModel):
    """Base for persisted resource identifiers.

    Fields are snake_case in Python and camelCase in the state file.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with state-file key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class S3ResourceState(ResourceStateModel):
    """Provisioned S3 bucket."""

    bucket_name: str = Field(..., alias="bucketName", description="Bucket name")
    region: str = Field(..., description="Bucket region")
    website_url: Optional[str] = Field(
        None, alias="websiteUrl", description="Static website endpoint URL"
    )
    tags: Optional[Dict[str, str]] = Field(None, description="Tags applied to the bucket")


class CloudFrontResourceState(ResourceStateModel):
    """Provisioned CloudFront distribution."""

    distribution_id: str = Field(..., alias="distributionId")
    domain_name: str = Field(..., alias="domainName", description="*.cloudfront.net domain")
    distribution_url: str = Field(..., alias="distributionUrl")
    aliases: Optional[List[str]] = Field(None, description="Custom domain aliases")


class ACMResourceState(ResourceStateModel):
    """Provisioned ACM certificate."""

    certificate_arn: str = Field(..., alias="certificateArn")
    domain_name: str = Field(
        ...,
        validation_alias=AliasChoices("domainName", "domain", "domain_name"),
        serialization_alias="domainName",
    )
    validation_method: str = Field("DNS", alias="validationMethod")
    status: Optional[str] = Field(None, description="Last observed certificate status")
    alternative_names: Optional[List[str]] = Field(None, alias="alternativeNames")


class DnsRecord(BaseModel):
    """A DNS record managed in a hosted zone."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    value: str


class Route53ResourceState(ResourceStateModel):
    """Provisioned Route53 hosted zone and the records written to it."""

    hosted_zone_id: str = Field(..., alias="hostedZoneId")
    domain: str = Field(
        ...,
        validation_alias=AliasChoices("domain", "hostedZoneName"),
        serialization_alias="domain",
    )
    records: List[DnsRecord] = Field(default_factory=list)
    name_servers: Optional[List[str]] = Field(None, alias="nameServers")
    created_zone: bool = Field(
        True, alias="createdZone", description="False when the zone existed before the first deploy"
    )


class ResourcesState(BaseModel):
    """Resource states keyed by kind; a missing kind is not provisioned."""

    model_config = ConfigDict(frozen=True)

    s3: Optional[S3ResourceState] = None
    cloudfront: Optional[CloudFrontResourceState] = None
    acm: Optional[ACMResourceState] = None
    route53: Optional[Route53ResourceState] = None


class DeploymentState(BaseModel):
    """Complete deployment state for one (app, environment) pair."""

    # Unknown top-level keys survive a load/save cycle
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    app: str = Field(..., description="Application identifier")
    environment: str = Field("default", description="Environment name")
    last_deployed: datetime = Field(default_factory=_utcnow, alias="lastDeployed")
    version: Optional[str] = Field(None, description="State schema version")
    resources: ResourcesState = Field(default_factory=ResourcesState)
    files: Dict[str, str] = Field(
        default_factory=dict, description="Deployed file path to SHA-256 hex digest"
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-compatible state file layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentState":
        """Create state from a state file dictionary."""
        return cls.model_validate(data)
