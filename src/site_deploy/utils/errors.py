"""Error handling framework for deployment operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass, asdict
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from site_deploy.utils.logging import get_logger

logger = get_logger(__name__)


# Provider error codes meaning "the resource is already gone"
NOT_FOUND_ERROR_CODES = {
    'NoSuchBucket',
    'NoSuchDistribution',
    'NoSuchHostedZone',
    'ResourceNotFoundException',
    'NotFound',
    '404',
}


class ErrorCategory(Enum):
    """Categories of errors that can occur during deployment."""
    CONFIGURATION = "configuration"
    AWS = "aws"
    NETWORK = "network"
    STATE = "state"
    PRECONDITION = "precondition"
    PROVISIONING = "provisioning"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Step failed
    WARNING = "warning"


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    operation: Optional[str] = None
    aws_service: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Base exception for deployment errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to a multi-line message for the console.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.cause:
            lines.append(f"   Cause: {self.cause}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': asdict(self.context),
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DeploymentError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CredentialError(DeploymentError):
    """Error related to AWS credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class NetworkError(DeploymentError):
    """Network-related error."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StateError(DeploymentError):
    """Error related to state management."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class StateLoadError(StateError):
    """State file exists but is corrupted or incomplete."""


class PreconditionError(DeploymentError):
    """Deployment cannot start, e.g. nothing to deploy."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PRECONDITION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ProvisioningError(DeploymentError):
    """Error during resource provisioning."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PROVISIONING,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ResourceNotFoundError(ProvisioningError):
    """The addressed remote resource does not exist (anymore)."""


def get_error_code(error: Exception) -> Optional[str]:
    """Return the provider error code of a botocore ClientError, if any."""
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Code')
    return None


def is_not_found_error(error: Exception) -> bool:
    """Check whether an error means the resource does not exist.

    Args:
        error: Exception raised by a collaborator or boto3 client

    Returns:
        True for ResourceNotFoundError and provider not-found codes
    """
    if isinstance(error, ResourceNotFoundError):
        return True
    return get_error_code(error) in NOT_FOUND_ERROR_CODES


class ErrorHandler:
    """Handles and categorizes errors from AWS and other sources."""

    # Mapping of AWS error codes to error categories and suggestions
    AWS_ERROR_MAPPING = {
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Check that your AWS credentials are correctly configured',
                'Verify credentials using: aws sts get-caller-identity',
            ]
        },
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
                'Re-authenticate with your identity provider',
            ]
        },
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Public bucket policies require S3 Block Public Access to be disabled for the account',
            ]
        },
        'BucketAlreadyExists': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Bucket name is owned by another AWS account',
            'suggestions': [
                'S3 bucket names are global; choose a different s3.bucket_name',
            ]
        },
        'CNAMEAlreadyExists': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Custom domain is already attached to another CloudFront distribution',
            'suggestions': [
                'Remove the alias from the other distribution',
                'Check cloudfront.custom_domain.aliases',
            ]
        },
        'InvalidViewerCertificate': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Certificate cannot be used by CloudFront',
            'suggestions': [
                'CloudFront requires an ACM certificate in us-east-1',
                'Wait until the certificate status is ISSUED',
            ]
        },
        'DistributionNotDisabled': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Distribution must be disabled before deletion',
            'suggestions': [
                'Re-run remove; the distribution is disabled first and deleted once deployed',
            ]
        },
        'ResourceInUseException': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Resource is still in use',
            'suggestions': [
                'Certificates stay in use until the CloudFront distribution is deleted',
                'Wait a few minutes and retry the removal',
            ]
        },
        'HostedZoneNotEmpty': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Hosted zone still contains records',
            'suggestions': [
                'Delete non-NS/SOA records from the zone and retry',
            ]
        },
        'RequestTimeout': {
            'category': ErrorCategory.NETWORK,
            'message': 'Request timed out',
            'suggestions': [
                'Check your network connectivity',
                'Retry the operation (automatic retry enabled)'
            ]
        },
        'ServiceUnavailable': {
            'category': ErrorCategory.NETWORK,
            'message': 'AWS service temporarily unavailable',
            'suggestions': [
                'Wait a few moments and retry',
                'Check AWS Service Health Dashboard',
            ]
        }
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, DeploymentError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return CredentialError(
                message='No usable AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Specify a profile with --profile or `profile` in the config file',
                ]
            )

        if isinstance(error, (ConnectionError, TimeoutError)):
            return NetworkError(
                message=f'Network error: {error}',
                context=context,
                cause=error,
                suggestions=['Check your internet connection', 'Retry the operation']
            )

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            context=context,
            cause=error,
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext
    ) -> DeploymentError:
        """Handle AWS ClientError.

        Args:
            error: The ClientError
            context: Error context

        Returns:
            Categorized DeploymentError
        """
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

        if error_code in NOT_FOUND_ERROR_CODES:
            return ResourceNotFoundError(error_message, context=context, cause=error)

        error_info = self.AWS_ERROR_MAPPING.get(error_code)
        if error_info:
            return DeploymentError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return DeploymentError(
            message=f"AWS Error ({error_code}): {error_message}",
            category=ErrorCategory.AWS,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=[f'AWS Request ID: {context.request_id}'] if context.request_id else []
        )

    def log_error(self, error: DeploymentError) -> None:
        """Log an error with a level matching its severity.

        Args:
            error: The error to log
        """
        if error.severity == ErrorSeverity.WARNING:
            self.logger.warning(error.to_user_message())
        else:
            self.logger.error(error.to_user_message())

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
