"""Tests for error classification."""

from botocore.exceptions import NoCredentialsError

from site_deploy.utils.errors import (
    DeploymentError,
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    PreconditionError,
    ResourceNotFoundError,
    get_error_code,
    is_not_found_error,
)


class TestNotFound:
    """Tests for not-found detection."""

    def test_provider_codes(self, client_error) -> None:
        """Test the provider codes that mean the resource is gone."""
        for code in ("NoSuchBucket", "NoSuchDistribution", "NoSuchHostedZone", "ResourceNotFoundException"):
            assert is_not_found_error(client_error(code))

    def test_other_errors(self, client_error) -> None:
        """Test that unrelated errors are not treated as not-found."""
        assert not is_not_found_error(client_error("AccessDenied"))
        assert not is_not_found_error(RuntimeError("NoSuchBucket"))

    def test_resource_not_found_error(self) -> None:
        """Test that the typed error counts as not-found."""
        assert is_not_found_error(ResourceNotFoundError("gone"))

    def test_error_code(self, client_error) -> None:
        """Test that only ClientErrors carry a code."""
        assert get_error_code(client_error("SlowDown")) == "SlowDown"
        assert get_error_code(ValueError("x")) is None


class TestErrorHandler:
    """Tests for ErrorHandler.handle_exception."""

    def test_deployment_errors_pass_through(self) -> None:
        """Test that typed errors are returned unchanged."""
        error = PreconditionError("Build directory is empty")

        assert ErrorHandler().handle_exception(error) is error

    def test_mapped_aws_error(self, client_error) -> None:
        """Test that known codes get a category and suggestions."""
        error = ErrorHandler().handle_exception(
            client_error("AccessDenied", "PutBucketPolicy", "denied"),
            ErrorContext(resource_id="my-bucket", operation="create"),
        )

        assert error.category == ErrorCategory.PERMISSION
        assert error.message.endswith(": denied")
        assert error.suggestions
        assert error.context.resource_id == "my-bucket"

    def test_not_found_aws_error(self, client_error) -> None:
        """Test that not-found codes become ResourceNotFoundError."""
        error = ErrorHandler().handle_exception(client_error("NoSuchBucket"))

        assert isinstance(error, ResourceNotFoundError)

    def test_unmapped_aws_error(self, client_error) -> None:
        """Test the generic AWS category."""
        error = ErrorHandler().handle_exception(client_error("Weird", message="odd"))

        assert error.category == ErrorCategory.AWS
        assert error.message == "AWS Error (Weird): odd"

    def test_missing_credentials(self) -> None:
        """Test that botocore credential errors become credential errors."""
        error = ErrorHandler().handle_exception(NoCredentialsError())

        assert error.category == ErrorCategory.CREDENTIAL

    def test_network_errors(self) -> None:
        """Test that connection failures are classified as network errors."""
        assert ErrorHandler().handle_exception(ConnectionError("reset")).category == ErrorCategory.NETWORK

    def test_unknown_errors_keep_cause(self) -> None:
        """Test that other exceptions are wrapped with their cause."""
        cause = ValueError("bad")

        error = ErrorHandler().handle_exception(cause)

        assert type(error) is DeploymentError
        assert error.cause is cause
        assert error.category == ErrorCategory.UNKNOWN


class TestUserMessage:
    """Tests for error rendering."""

    def test_user_message_includes_context_and_suggestions(self) -> None:
        """Test the console rendering of an error."""
        error = DeploymentError(
            "Upload failed",
            context=ErrorContext(resource_id="index.html", operation="upload"),
            suggestions=["Retry"],
        )

        message = error.to_user_message()

        assert message.startswith("ERROR: Upload failed")
        assert "   Resource: index.html" in message
        assert "   1. Retry" in message

    def test_to_dict(self) -> None:
        """Test the serialized error."""
        data = PreconditionError("nothing to deploy").to_dict()

        assert data["category"] == "precondition"
        assert data["severity"] == "critical"
        assert data["cause"] is None
