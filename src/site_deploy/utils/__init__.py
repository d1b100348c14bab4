"""Utility modules for logging, AWS client management, retries and errors."""

from site_deploy.utils.aws_client import AWSClientManager, AWSCredentials
from site_deploy.utils.retry import (
    AWS_RETRYABLE_ERRORS,
    RetryStrategy,
    retryable_errors_for,
    with_retry,
)
from site_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    CredentialError,
    NetworkError,
    StateError,
    StateLoadError,
    PreconditionError,
    ProvisioningError,
    ResourceNotFoundError,
    ErrorHandler,
    error_handler,
    is_not_found_error,
)
from site_deploy.utils.logging import get_logger, setup_logging

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Retry
    'AWS_RETRYABLE_ERRORS',
    'RetryStrategy',
    'retryable_errors_for',
    'with_retry',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'CredentialError',
    'NetworkError',
    'StateError',
    'StateLoadError',
    'PreconditionError',
    'ProvisioningError',
    'ResourceNotFoundError',
    'ErrorHandler',
    'error_handler',
    'is_not_found_error',

    # Logging
    'get_logger',
    'setup_logging',
]
