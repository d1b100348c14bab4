"""Tests for Route53Manager."""

from unittest.mock import MagicMock

import pytest

from site_deploy.aws.base import managed_tags
from site_deploy.aws.route53 import (
    CLOUDFRONT_HOSTED_ZONE_ID,
    Route53Manager,
    is_cloudfront_alias,
    normalize_zone_id,
)
from site_deploy.state.models import DnsRecord
from site_deploy.utils.errors import ResourceNotFoundError

RECORD_SETS = [
    {"Name": "example.com.", "Type": "NS", "TTL": 172800, "ResourceRecords": [{"Value": "ns-1."}]},
    {"Name": "example.com.", "Type": "SOA", "TTL": 900, "ResourceRecords": [{"Value": "soa"}]},
    {"Name": "www.example.com.", "Type": "A", "AliasTarget": {"DNSName": "d1.cloudfront.net."}},
    {"Name": "mail.example.com.", "Type": "MX", "TTL": 300, "ResourceRecords": [{"Value": "10 mx"}]},
]


@pytest.fixture
def r53_client() -> MagicMock:
    client = MagicMock()
    client.get_paginator.return_value.paginate.return_value = [{"ResourceRecordSets": RECORD_SETS}]
    return client


@pytest.fixture
def manager(r53_client: MagicMock) -> Route53Manager:
    client_manager = MagicMock()
    client_manager.get_client.return_value = r53_client
    return Route53Manager(client_manager)


def changes(client: MagicMock) -> list:
    return client.change_resource_record_sets.call_args.kwargs["ChangeBatch"]["Changes"]


class TestHelpers:
    """Tests for module helpers."""

    def test_normalize_zone_id(self) -> None:
        """Test that the /hostedzone/ prefix is stripped."""
        assert normalize_zone_id("/hostedzone/Z123") == "Z123"
        assert normalize_zone_id("Z123") == "Z123"

    def test_cloudfront_alias_detection(self) -> None:
        """Test that only A/AAAA records to cloudfront.net are aliases."""
        assert is_cloudfront_alias(DnsRecord(name="a.com", type="A", value="d1.cloudfront.net"))
        assert not is_cloudfront_alias(DnsRecord(name="a.com", type="CNAME", value="d1.cloudfront.net"))
        assert not is_cloudfront_alias(DnsRecord(name="a.com", type="A", value="1.2.3.4"))


class TestFindZone:
    """Tests for hosted zone lookup."""

    def test_walks_up_to_parent_zone(self, manager, r53_client) -> None:
        """Test that www.example.com resolves to the example.com zone."""
        def by_name(DNSName, MaxItems):
            if DNSName == "example.com.":
                return {"HostedZones": [{"Id": "/hostedzone/Z1", "Name": "example.com.", "Config": {}}]}
            return {"HostedZones": [{"Id": "/hostedzone/Z9", "Name": "zzz.com.", "Config": {}}]}

        r53_client.list_hosted_zones_by_name.side_effect = by_name
        r53_client.get_hosted_zone.return_value = {"DelegationSet": {"NameServers": ["ns-1"]}}

        zone = manager.find_zone("www.example.com")

        assert zone.hosted_zone_id == "Z1"
        assert zone.name == "example.com"
        assert zone.name_servers == ["ns-1"]

    def test_private_zones_are_ignored(self, manager, r53_client) -> None:
        """Test that a private zone with the right name is not used."""
        r53_client.list_hosted_zones_by_name.return_value = {
            "HostedZones": [{"Id": "/hostedzone/Z1", "Name": "example.com.", "Config": {"PrivateZone": True}}]
        }

        assert manager.find_zone("example.com") is None


class TestRecords:
    """Tests for record changes."""

    def test_alias_records_target_cloudfront(self, manager, r53_client) -> None:
        """Test that alias records use the CloudFront hosted zone id."""
        manager.change_records("Z1", [
            DnsRecord(name="www.example.com", type="A", value="d1.cloudfront.net"),
            DnsRecord(name="_x.example.com.", type="CNAME", value="_y.acm-validations.aws."),
        ])

        alias, cname = changes(r53_client)
        assert alias["Action"] == "UPSERT"
        assert alias["ResourceRecordSet"]["Name"] == "www.example.com."
        assert alias["ResourceRecordSet"]["AliasTarget"]["HostedZoneId"] == CLOUDFRONT_HOSTED_ZONE_ID
        assert cname["ResourceRecordSet"]["ResourceRecords"] == [{"Value": "_y.acm-validations.aws."}]

    def test_empty_change_is_skipped(self, manager, r53_client) -> None:
        """Test that no API call is made for an empty record list."""
        manager.change_records("Z1", [])

        r53_client.change_resource_record_sets.assert_not_called()

    def test_delete_records_only_touches_matching(self, manager, r53_client) -> None:
        """Test that only recorded name/type pairs are deleted, as stored."""
        manager.delete_records("Z1", [DnsRecord(name="www.example.com", type="A", value="d1.cloudfront.net")])

        (change,) = changes(r53_client)
        assert change["Action"] == "DELETE"
        assert change["ResourceRecordSet"] == RECORD_SETS[2]


class TestDeleteZone:
    """Tests for hosted zone deletion."""

    def test_deletes_records_except_ns_soa_then_zone(self, manager, r53_client) -> None:
        """Test that NS and SOA records are left for the zone deletion."""
        manager.delete_zone("Z1")

        deleted = [c["ResourceRecordSet"]["Type"] for c in changes(r53_client)]
        assert deleted == ["A", "MX"]
        r53_client.delete_hosted_zone.assert_called_once_with(Id="Z1")

    def test_missing_zone_raises_not_found(self, manager, r53_client, client_error) -> None:
        """Test that NoSuchHostedZone becomes ResourceNotFoundError."""
        r53_client.get_paginator.return_value.paginate.side_effect = client_error(
            "NoSuchHostedZone", "ListResourceRecordSets"
        )

        with pytest.raises(ResourceNotFoundError):
            manager.delete_zone("Z1")


class TestFindManaged:
    """Tests for hosted zone discovery."""

    def test_returns_tagged_public_zones(self, manager, r53_client) -> None:
        """Test that tagged zones are recorded as created by this tool."""
        r53_client.get_paginator.return_value.paginate.return_value = [{"HostedZones": [
            {"Id": "/hostedzone/ZPRIVATE", "Name": "internal.", "Config": {"PrivateZone": True}},
            {"Id": "/hostedzone/ZUNTAGGED", "Name": "other.com.", "Config": {"PrivateZone": False}},
            {"Id": "/hostedzone/ZMINE", "Name": "example.org.", "Config": {"PrivateZone": False}},
        ]}]
        r53_client.list_tags_for_resource.side_effect = [
            {"ResourceTagSet": {"Tags": []}},
            {"ResourceTagSet": {"Tags": [
                {"Key": k, "Value": v} for k, v in managed_tags("my-site", "default").items()
            ]}},
        ]
        r53_client.get_hosted_zone.return_value = {"DelegationSet": {"NameServers": ["ns-1.aws"]}}

        found = manager.find_managed("my-site", "default")

        assert len(found) == 1
        zone = found[0].resource
        assert zone.hosted_zone_id == "ZMINE"
        assert zone.domain == "example.org"
        assert zone.created_zone is True
        assert zone.name_servers == ["ns-1.aws"]
        r53_client.get_paginator.assert_called_with("list_hosted_zones")
        r53_client.list_tags_for_resource.assert_any_call(ResourceType="hostedzone", ResourceId="ZMINE")
