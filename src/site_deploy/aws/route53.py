"""Route53 hosted zone and record manager."""

import time
import uuid
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from site_deploy.state.models import DnsRecord, Route53ResourceState
from site_deploy.utils.aws_client import AWSClientManager
from site_deploy.utils.errors import ResourceNotFoundError, is_not_found_error
from site_deploy.utils.logging import get_logger

from .base import (
    DiscoveredResource,
    DnsManager,
    HostedZoneInfo,
    matches_managed_tags,
    tags_from_list,
)

logger = get_logger(__name__)

# Fixed hosted zone id used by alias targets that point at CloudFront
CLOUDFRONT_HOSTED_ZONE_ID = "Z2FDTNDATAQYW2"
CLOUDFRONT_DOMAIN_SUFFIX = ".cloudfront.net"

DEFAULT_TTL = 300

# Records Route53 owns; they go away with the zone
PROTECTED_RECORD_TYPES = {"NS", "SOA"}


def normalize_zone_id(hosted_zone_id: str) -> str:
    """Strip the ``/hostedzone/`` prefix returned by the API."""
    return hosted_zone_id.split("/")[-1]


def _fqdn(name: str) -> str:
    return name if name.endswith(".") else f"{name}."


def _bare(name: str) -> str:
    return name.rstrip(".").lower()


def is_cloudfront_alias(record: DnsRecord) -> bool:
    """Check whether a record should be written as a CloudFront alias."""
    return record.type in ("A", "AAAA") and _bare(record.value).endswith(CLOUDFRONT_DOMAIN_SUFFIX)


def _record_set(record: DnsRecord) -> Dict[str, Any]:
    if is_cloudfront_alias(record):
        return {
            'Name': _fqdn(record.name),
            'Type': record.type,
            'AliasTarget': {
                'DNSName': _fqdn(record.value),
                'HostedZoneId': CLOUDFRONT_HOSTED_ZONE_ID,
                'EvaluateTargetHealth': False,
            },
        }
    return {
        'Name': _fqdn(record.name),
        'Type': record.type,
        'TTL': DEFAULT_TTL,
        'ResourceRecords': [{'Value': record.value}],
    }


class Route53Manager(DnsManager):
    """Manages hosted zones and records through boto3."""

    def __init__(self, client_manager: AWSClientManager):
        """Initialize Route53 manager.

        Args:
            client_manager: Source of boto3 clients
        """
        self.route53_client = client_manager.get_client('route53', region_name='us-east-1')

    def find_zone(self, domain: str) -> Optional[HostedZoneInfo]:
        """Find the public zone for the domain, walking up to its parents.

        ``www.example.com`` is served by a zone for ``example.com`` when no
        zone exists for the full name.
        """
        labels = _bare(domain).split('.')
        for i in range(len(labels) - 1):
            candidate = '.'.join(labels[i:])
            response = self.route53_client.list_hosted_zones_by_name(
                DNSName=_fqdn(candidate), MaxItems='1'
            )
            for zone in response.get('HostedZones', []):
                if _bare(zone['Name']) == candidate and not zone.get('Config', {}).get('PrivateZone'):
                    zone_id = normalize_zone_id(zone['Id'])
                    return HostedZoneInfo(
                        hosted_zone_id=zone_id,
                        name=candidate,
                        name_servers=self._get_name_servers(zone_id),
                    )
        return None

    def _get_name_servers(self, hosted_zone_id: str) -> List[str]:
        response = self.route53_client.get_hosted_zone(Id=hosted_zone_id)
        return list(response.get('DelegationSet', {}).get('NameServers', []))

    def create(self, domain: str, tags: Optional[Dict[str, str]] = None) -> HostedZoneInfo:
        response = self.route53_client.create_hosted_zone(
            Name=_fqdn(domain),
            CallerReference=f"site-deploy-{int(time.time())}-{uuid.uuid4().hex[:8]}",
            HostedZoneConfig={
                'Comment': 'Hosted zone created by site-deploy',
                'PrivateZone': False,
            }
        )
        zone_id = normalize_zone_id(response['HostedZone']['Id'])

        if tags:
            self.route53_client.change_tags_for_resource(
                ResourceType='hostedzone',
                ResourceId=zone_id,
                AddTags=[{'Key': k, 'Value': v} for k, v in sorted(tags.items())]
            )

        name_servers = list(response.get('DelegationSet', {}).get('NameServers', []))
        logger.info(f"Created hosted zone {zone_id} for {domain}")
        return HostedZoneInfo(hosted_zone_id=zone_id, name=_bare(domain), name_servers=name_servers)

    def change_records(self, hosted_zone_id: str, records: List[DnsRecord]) -> None:
        if not records:
            return

        self.route53_client.change_resource_record_sets(
            HostedZoneId=hosted_zone_id,
            ChangeBatch={
                'Comment': 'Managed by site-deploy',
                'Changes': [
                    {'Action': 'UPSERT', 'ResourceRecordSet': _record_set(record)}
                    for record in records
                ],
            }
        )
        logger.info(f"Upserted {len(records)} records in zone {hosted_zone_id}")

    def _list_record_sets(self, hosted_zone_id: str) -> List[Dict[str, Any]]:
        paginator = self.route53_client.get_paginator('list_resource_record_sets')
        record_sets = []
        for page in paginator.paginate(HostedZoneId=hosted_zone_id):
            record_sets.extend(page.get('ResourceRecordSets', []))
        return record_sets

    def _delete_record_sets(self, hosted_zone_id: str, record_sets: List[Dict[str, Any]]) -> None:
        if not record_sets:
            return
        self.route53_client.change_resource_record_sets(
            HostedZoneId=hosted_zone_id,
            ChangeBatch={
                'Comment': 'Removed by site-deploy',
                'Changes': [
                    {'Action': 'DELETE', 'ResourceRecordSet': record_set}
                    for record_set in record_sets
                ],
            }
        )

    def delete_records(self, hosted_zone_id: str, records: List[DnsRecord]) -> None:
        wanted = {(_bare(record.name), record.type) for record in records}
        try:
            # DELETE must repeat the record set exactly as Route53 stores it
            matching = [
                record_set
                for record_set in self._list_record_sets(hosted_zone_id)
                if (_bare(record_set['Name']), record_set['Type']) in wanted
            ]
            self._delete_record_sets(hosted_zone_id, matching)
        except ClientError as e:
            if is_not_found_error(e):
                raise ResourceNotFoundError(
                    f"Hosted zone not found: {hosted_zone_id}", cause=e
                ) from e
            raise

        logger.info(f"Deleted {len(matching)} records from zone {hosted_zone_id}")

    def delete_zone(self, hosted_zone_id: str) -> None:
        try:
            removable = [
                record_set
                for record_set in self._list_record_sets(hosted_zone_id)
                if record_set['Type'] not in PROTECTED_RECORD_TYPES
            ]
            self._delete_record_sets(hosted_zone_id, removable)
            self.route53_client.delete_hosted_zone(Id=hosted_zone_id)
        except ClientError as e:
            if is_not_found_error(e):
                raise ResourceNotFoundError(
                    f"Hosted zone not found: {hosted_zone_id}", cause=e
                ) from e
            raise

        logger.info(f"Deleted hosted zone {hosted_zone_id}")

    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        found = []
        paginator = self.route53_client.get_paginator('list_hosted_zones')
        for page in paginator.paginate():
            for zone in page.get('HostedZones', []):
                if zone.get('Config', {}).get('PrivateZone'):
                    continue

                zone_id = normalize_zone_id(zone['Id'])
                response = self.route53_client.list_tags_for_resource(
                    ResourceType='hostedzone', ResourceId=zone_id
                )
                tags = tags_from_list(response.get('ResourceTagSet', {}).get('Tags', []))
                if not matches_managed_tags(tags, app, environment):
                    continue

                found.append(DiscoveredResource(
                    resource=Route53ResourceState(
                        hosted_zone_id=zone_id,
                        domain=_bare(zone['Name']),
                        name_servers=self._get_name_servers(zone_id) or None,
                        created_zone=True,
                    ),
                    tags=tags,
                ))

        logger.debug(f"Found {len(found)} managed hosted zones")
        return found
