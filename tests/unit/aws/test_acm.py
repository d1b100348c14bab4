"""Tests for ACMManager."""

from unittest.mock import MagicMock

import pytest

from site_deploy.aws.acm import ACMManager
from site_deploy.aws.base import managed_tags
from site_deploy.state.models import DnsRecord
from site_deploy.utils.errors import ProvisioningError, ResourceNotFoundError


@pytest.fixture
def acm_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def manager(acm_client: MagicMock, sleeps: list) -> ACMManager:
    client_manager = MagicMock()
    client_manager.get_client.return_value = acm_client
    return ACMManager(client_manager, poll_interval=2.0, poll_attempts=3, sleep=sleeps.append)


def validation_option(domain: str, record_name=None) -> dict:
    option = {"DomainName": domain}
    if record_name:
        option["ResourceRecord"] = {"Name": record_name, "Type": "CNAME", "Value": "_v.acm-validations.aws."}
    return option


class TestFind:
    """Tests for locating issued certificates."""

    def test_client_is_created_in_us_east_1(self) -> None:
        """Test that certificates are always managed in us-east-1."""
        client_manager = MagicMock()

        ACMManager(client_manager)

        client_manager.get_client.assert_called_once_with("acm", region_name="us-east-1")

    def test_matches_primary_domain(self, manager, acm_client) -> None:
        """Test that a certificate whose DomainName matches is returned."""
        acm_client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [
                {"CertificateArn": "arn:1", "DomainName": "other.com", "SubjectAlternativeNameSummaries": []},
                {"CertificateArn": "arn:2", "DomainName": "www.example.com"},
            ]}
        ]

        assert manager.find("www.example.com") == "arn:2"

    def test_matches_alternative_name_via_describe(self, manager, acm_client) -> None:
        """Test that SANs are fetched when the summary lacks them."""
        acm_client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [{"CertificateArn": "arn:3", "DomainName": "example.com"}]}
        ]
        acm_client.describe_certificate.return_value = {
            "Certificate": {"SubjectAlternativeNames": ["example.com", "www.example.com"]}
        }

        assert manager.find("www.example.com") == "arn:3"

    def test_no_match(self, manager, acm_client) -> None:
        """Test that None is returned when nothing covers the domain."""
        acm_client.get_paginator.return_value.paginate.return_value = [{"CertificateSummaryList": []}]

        assert manager.find("www.example.com") is None



def tag_list(tags: dict) -> list:
    return [{"Key": k, "Value": v} for k, v in tags.items()]


class TestFindPending:
    """Tests for reusing certificates left pending by an interrupted run."""

    def test_returns_pending_certificate_with_tags(self, manager, acm_client) -> None:
        """Test that a pending certificate carrying every tag is returned."""
        tags = managed_tags("my-site", "default")
        acm_client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [
                {"CertificateArn": "arn:other", "DomainName": "other.com"},
                {"CertificateArn": "arn:pending", "DomainName": "www.example.com"},
            ]}
        ]
        acm_client.list_tags_for_certificate.return_value = {"Tags": tag_list(tags)}

        assert manager.find_pending("www.example.com", tags) == "arn:pending"
        acm_client.get_paginator.return_value.paginate.assert_called_once_with(
            CertificateStatuses=["PENDING_VALIDATION"]
        )
        acm_client.list_tags_for_certificate.assert_called_once_with(CertificateArn="arn:pending")

    def test_ignores_certificate_of_another_environment(self, manager, acm_client) -> None:
        """Test that a pending certificate with different tags is not reused."""
        acm_client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [{"CertificateArn": "arn:pending", "DomainName": "www.example.com"}]}
        ]
        acm_client.list_tags_for_certificate.return_value = {
            "Tags": tag_list(managed_tags("my-site", "staging"))
        }

        assert manager.find_pending("www.example.com", managed_tags("my-site", "default")) is None

    def test_untagged_certificate_is_not_reused(self, manager, acm_client) -> None:
        """Test that a pending certificate without tags is left alone."""
        acm_client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [{"CertificateArn": "arn:manual", "DomainName": "www.example.com"}]}
        ]
        acm_client.list_tags_for_certificate.return_value = {"Tags": []}

        assert manager.find_pending("www.example.com", managed_tags("my-site", "default")) is None


class TestFindManaged:
    """Tests for certificate discovery."""

    def test_returns_tagged_issued_and_pending(self, manager, acm_client) -> None:
        """Test that managed certificates of both statuses become resource states."""
        acm_client.get_paginator.return_value.paginate.return_value = [
            {"CertificateSummaryList": [
                {
                    "CertificateArn": "arn:1",
                    "DomainName": "www.example.com",
                    "SubjectAlternativeNameSummaries": ["www.example.com", "example.com"],
                    "Status": "ISSUED",
                },
                {"CertificateArn": "arn:2", "DomainName": "manual.example.com", "Status": "ISSUED"},
            ]}
        ]
        acm_client.list_tags_for_certificate.side_effect = [
            {"Tags": tag_list(managed_tags("my-site", "default"))},
            {"Tags": []},
        ]

        found = manager.find_managed("my-site", "default")

        assert len(found) == 1
        assert found[0].resource.certificate_arn == "arn:1"
        assert found[0].resource.status == "ISSUED"
        assert found[0].resource.alternative_names == ["example.com"]
        assert found[0].environment == "default"
        acm_client.get_paginator.return_value.paginate.assert_called_once_with(
            CertificateStatuses=["ISSUED", "PENDING_VALIDATION"]
        )


class TestRequestAndValidate:
    """Tests for requesting and validating certificates."""

    def test_request_uses_dns_validation(self, manager, acm_client) -> None:
        """Test that SANs include the primary domain and tags are passed."""
        acm_client.request_certificate.return_value = {"CertificateArn": "arn:new"}

        arn = manager.request("www.example.com", ["example.com"], {"k": "v"})

        assert arn == "arn:new"
        acm_client.request_certificate.assert_called_once_with(
            DomainName="www.example.com",
            SubjectAlternativeNames=["www.example.com", "example.com"],
            ValidationMethod="DNS",
            Tags=[{"Key": "k", "Value": "v"}],
        )

    def test_validation_records_polled_until_present(self, manager, acm_client, sleeps) -> None:
        """Test that records are re-read until every domain has one."""
        acm_client.describe_certificate.side_effect = [
            {"Certificate": {"DomainValidationOptions": [validation_option("example.com")]}},
            {"Certificate": {"DomainValidationOptions": [
                validation_option("example.com", "_a.example.com."),
                validation_option("www.example.com", "_a.example.com."),
            ]}},
        ]

        records = manager.get_validation_records("arn:new")

        assert records == [
            DnsRecord(name="_a.example.com.", type="CNAME", value="_v.acm-validations.aws.")
        ]
        assert sleeps == [2.0]

    def test_validation_records_time_out(self, manager, acm_client, sleeps) -> None:
        """Test that missing records raise ProvisioningError after the last poll."""
        acm_client.describe_certificate.return_value = {
            "Certificate": {"DomainValidationOptions": [validation_option("example.com")]}
        }

        with pytest.raises(ProvisioningError):
            manager.get_validation_records("arn:new")
        assert sleeps == [2.0, 2.0]


class TestDelete:
    """Tests for certificate deletion."""

    def test_delete_missing_raises_not_found(self, manager, acm_client, client_error) -> None:
        """Test that ResourceNotFoundException becomes ResourceNotFoundError."""
        acm_client.delete_certificate.side_effect = client_error(
            "ResourceNotFoundException", "DeleteCertificate"
        )

        with pytest.raises(ResourceNotFoundError):
            manager.delete("arn:gone")

    def test_delete_in_use_propagates(self, manager, acm_client, client_error) -> None:
        """Test that in-use errors are left for the caller's retry policy."""
        acm_client.delete_certificate.side_effect = client_error(
            "ResourceInUseException", "DeleteCertificate"
        )

        with pytest.raises(Exception) as exc_info:
            manager.delete("arn:busy")
        assert not isinstance(exc_info.value, ResourceNotFoundError)
