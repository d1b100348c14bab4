"""Tests for per-kind resource tracking."""

import pytest

from site_deploy.state.models import (
    ACMResourceState,
    CloudFrontResourceState,
    DeploymentState,
    DnsRecord,
    Route53ResourceState,
    S3ResourceState,
)
from site_deploy.state.resource_state import (
    ResourceKind,
    clear_resources,
    format_resource_summary,
    get_resource_identifiers,
    has_any_resource,
    has_cloudfront_resource,
    remove_resource,
    update_resource,
    update_s3_resource,
    validate_resource_state,
)

BUCKET = S3ResourceState(bucket_name="my-site-bucket", region="us-east-1")
DISTRIBUTION = CloudFrontResourceState(
    distribution_id="E123",
    domain_name="d123.cloudfront.net",
    distribution_url="https://d123.cloudfront.net",
    aliases=["www.example.com"],
)


@pytest.fixture
def state() -> DeploymentState:
    return DeploymentState(app="my-site")


class TestUpdateAndRemove:
    """Tests for recording and forgetting resources."""

    def test_update_returns_new_state(self, state) -> None:
        """Test that the input state is left untouched."""
        updated = update_s3_resource(state, BUCKET)

        assert updated.resources.s3 == BUCKET
        assert state.resources.s3 is None

    def test_update_replaces_previous_entry(self, state) -> None:
        """Test that a kind holds at most one resource."""
        other = S3ResourceState(bucket_name="other", region="eu-west-1")

        updated = update_resource(update_s3_resource(state, BUCKET), ResourceKind.S3, other)

        assert updated.resources.s3.bucket_name == "other"

    def test_update_rejects_wrong_type(self, state) -> None:
        """Test that a mismatched resource type raises TypeError."""
        with pytest.raises(TypeError, match="cloudfront resource must be CloudFrontResourceState"):
            update_resource(state, ResourceKind.CLOUDFRONT, BUCKET)

    def test_remove_absent_kind_is_noop(self, state) -> None:
        """Test that removing a missing kind yields an equal state."""
        assert remove_resource(state, ResourceKind.ACM) == state

    def test_remove_leaves_other_kinds(self, state) -> None:
        """Test that removal only affects the given kind."""
        full = update_resource(update_s3_resource(state, BUCKET), ResourceKind.CLOUDFRONT, DISTRIBUTION)

        removed = remove_resource(full, ResourceKind.CLOUDFRONT)

        assert not has_cloudfront_resource(removed)
        assert removed.resources.s3 == BUCKET
        assert has_cloudfront_resource(full)

    def test_clear_resources(self, state) -> None:
        """Test that clearing forgets every kind but keeps files."""
        full = update_s3_resource(state.model_copy(update={"files": {"a": "1"}}), BUCKET)

        cleared = clear_resources(full)

        assert not has_any_resource(cleared)
        assert cleared.files == {"a": "1"}


class TestValidation:
    """Tests for validate_resource_state."""

    def test_complete_state_is_valid(self, state) -> None:
        """Test that populated identifiers pass."""
        assert validate_resource_state(update_s3_resource(state, BUCKET)) == (True, [])

    def test_empty_identifier_is_reported(self, state) -> None:
        """Test that an empty bucket name is flagged."""
        broken = update_s3_resource(state, S3ResourceState(bucket_name="", region="us-east-1"))

        valid, errors = validate_resource_state(broken)

        assert valid is False
        assert errors == ["s3: missing bucket_name"]


class TestSummaries:
    """Tests for identifier and summary helpers."""

    def test_identifiers(self, state) -> None:
        """Test the primary identifier of each recorded kind."""
        full = update_resource(update_s3_resource(state, BUCKET), ResourceKind.CLOUDFRONT, DISTRIBUTION)
        full = update_resource(
            full,
            ResourceKind.ACM,
            ACMResourceState(certificate_arn="arn:cert", domain_name="www.example.com"),
        )

        assert get_resource_identifiers(full) == {
            "s3": "my-site-bucket",
            "cloudfront": "E123",
            "acm": "arn:cert",
        }

    def test_empty_summary(self, state) -> None:
        """Test the summary of a state without resources."""
        assert format_resource_summary(state) == "No resources deployed"

    def test_summary_lists_resources(self, state) -> None:
        """Test that recorded resources appear in the summary."""
        zone = Route53ResourceState(
            hosted_zone_id="Z1",
            domain="example.com",
            records=[DnsRecord(name="www.example.com", type="A", value="d123.cloudfront.net")],
        )
        full = update_resource(update_s3_resource(state, BUCKET), ResourceKind.ROUTE53, zone)

        summary = format_resource_summary(full)

        assert "S3 bucket: my-site-bucket (us-east-1)" in summary
        assert "Hosted zone: example.com (Z1)" in summary
        assert "  Records: 1" in summary
