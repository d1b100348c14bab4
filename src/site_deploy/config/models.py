"""Pydantic models for the site configuration file."""

import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
DOMAIN_PATTERN = re.compile(r"^(?=.{1,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


class S3Config(BaseModel):
    """S3 bucket and upload configuration."""

    bucket_name: str = Field(..., description="Globally unique bucket name")
    build_dir: str = Field("dist", min_length=1, description="Directory holding the built site")
    index_document: str = Field("index.html", min_length=1)
    error_document: Optional[str] = Field(None, description="Object served for 4xx errors")
    website_hosting: bool = True
    concurrency: int = Field(10, ge=1, le=100, description="Maximum concurrent uploads")
    gzip: bool = True
    exclude: List[str] = Field(default_factory=list, description="Glob patterns to skip")

    @field_validator("bucket_name")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        """Validate S3 bucket naming rules."""
        if not BUCKET_NAME_PATTERN.match(v):
            raise ValueError(
                "Bucket name must be 3-63 characters of lowercase letters, digits, dots and hyphens"
            )
        if ".." in v:
            raise ValueError("Bucket name must not contain consecutive dots")
        if re.match(r"^\d+\.\d+\.\d+\.\d+$", v):
            raise ValueError("Bucket name must not be formatted as an IP address")
        return v


class CustomDomainConfig(BaseModel):
    """Custom domain served through CloudFront."""

    domain_name: str = Field(..., description="Primary domain, e.g. www.example.com")
    certificate_arn: Optional[str] = Field(
        None, description="Existing us-east-1 ACM certificate; requested when omitted"
    )
    aliases: List[str] = Field(default_factory=list, description="Additional domain names")
    create_hosted_zone: bool = Field(
        False, description="Create a Route53 zone when none serves the domain"
    )

    @field_validator("domain_name")
    @classmethod
    def validate_domain_name(cls, v: str) -> str:
        """Validate domain name format."""
        v = v.lower().rstrip(".")
        if not DOMAIN_PATTERN.match(v):
            raise ValueError(f"Invalid domain name: {v}")
        return v

    @field_validator("certificate_arn")
    @classmethod
    def validate_certificate_arn(cls, v: Optional[str]) -> Optional[str]:
        """CloudFront only accepts certificates from us-east-1."""
        if v is not None and not v.startswith("arn:aws:acm:us-east-1:"):
            raise ValueError("certificate_arn must be an ACM certificate in us-east-1")
        return v

    @property
    def all_domains(self) -> List[str]:
        """Primary domain followed by unique aliases."""
        return list(dict.fromkeys([self.domain_name] + self.aliases))


class CloudFrontConfig(BaseModel):
    """CloudFront distribution configuration."""

    enabled: bool = False
    price_class: str = Field(
        "PriceClass_100", pattern="^PriceClass_(100|200|All)$"
    )
    default_ttl: int = Field(86400, ge=0)
    max_ttl: int = Field(31536000, ge=0)
    min_ttl: int = Field(0, ge=0)
    ipv6: bool = True
    wait_for_deployment: bool = Field(
        False, description="Block until the distribution reports Deployed"
    )
    custom_domain: Optional[CustomDomainConfig] = None

    @model_validator(mode="after")
    def validate_ttls(self):
        """Validate TTL ordering."""
        if not self.min_ttl <= self.default_ttl <= self.max_ttl:
            raise ValueError("TTLs must satisfy min_ttl <= default_ttl <= max_ttl")
        return self


class RetryConfig(BaseModel):
    """Retry settings for AWS calls."""

    max_retries: int = Field(3, ge=0, le=10)
    initial_delay: float = Field(1.0, gt=0)
    max_delay: float = Field(30.0, gt=0)
    backoff_multiplier: float = Field(2.0, ge=1)


class SiteConfig(BaseModel):
    """Complete site configuration after environment overrides are applied."""

    app: str = Field(..., min_length=1, max_length=63, pattern="^[a-z0-9][a-z0-9-]*$")
    region: str = Field("us-east-1", pattern="^[a-z]{2}(-gov)?-[a-z]+-\\d$")
    profile: Optional[str] = Field(None, description="AWS profile name")
    s3: S3Config
    cloudfront: CloudFrontConfig = Field(default_factory=CloudFrontConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    state_dir: str = Field(".deploy", min_length=1)

    @model_validator(mode="after")
    def validate_custom_domain(self):
        """A custom domain is only served through CloudFront."""
        if self.cloudfront.custom_domain and not self.cloudfront.enabled:
            raise ValueError("cloudfront.custom_domain requires cloudfront.enabled")
        return self
