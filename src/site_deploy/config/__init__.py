"""Configuration management for site deployments."""

from .models import (
    CloudFrontConfig,
    CustomDomainConfig,
    RetryConfig,
    S3Config,
    SiteConfig,
)
from .parser import Config, ConfigValidationError, deep_merge

__all__ = [
    "CloudFrontConfig",
    "CustomDomainConfig",
    "RetryConfig",
    "S3Config",
    "SiteConfig",
    "Config",
    "ConfigValidationError",
    "deep_merge",
]
