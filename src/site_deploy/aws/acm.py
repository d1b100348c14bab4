"""ACM certificate manager.

CloudFront only accepts certificates from us-east-1, so the client is always
created there regardless of the site region.
"""

import time
from typing import Any, Callable, Dict, Iterator, List, Optional

from botocore.exceptions import ClientError

from site_deploy.state.models import ACMResourceState, DnsRecord
from site_deploy.utils.aws_client import CLOUDFRONT_CERTIFICATE_REGION, AWSClientManager
from site_deploy.utils.errors import ProvisioningError, ResourceNotFoundError, is_not_found_error
from site_deploy.utils.logging import get_logger

from .base import CertificateManager, DiscoveredResource, matches_managed_tags, tags_from_list

logger = get_logger(__name__)


class ACMManager(CertificateManager):
    """Finds, requests and deletes DNS-validated certificates."""

    def __init__(
        self,
        client_manager: AWSClientManager,
        poll_interval: float = 5.0,
        poll_attempts: int = 12,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize ACM manager.

        Args:
            client_manager: Source of boto3 clients
            poll_interval: Seconds between polls for validation records
            poll_attempts: Polls before giving up on validation records
            sleep: Function used to wait between polls
        """
        self.acm_client = client_manager.get_client(
            'acm', region_name=CLOUDFRONT_CERTIFICATE_REGION
        )
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.sleep = sleep

    def _summaries(self, statuses: List[str]) -> Iterator[Dict[str, Any]]:
        paginator = self.acm_client.get_paginator('list_certificates')
        for page in paginator.paginate(CertificateStatuses=statuses):
            yield from page.get('CertificateSummaryList', [])

    def _tags(self, certificate_arn: str) -> Dict[str, str]:
        response = self.acm_client.list_tags_for_certificate(CertificateArn=certificate_arn)
        return tags_from_list(response.get('Tags', []))

    def find(self, domain: str) -> Optional[str]:
        for summary in self._summaries(['ISSUED']):
            arn = summary['CertificateArn']
            if summary.get('DomainName') == domain:
                return arn

            alternative_names = summary.get('SubjectAlternativeNameSummaries')
            if alternative_names is None:
                details = self.acm_client.describe_certificate(CertificateArn=arn)
                alternative_names = details['Certificate'].get('SubjectAlternativeNames', [])
            if domain in alternative_names:
                return arn

        return None

    def find_pending(self, domain: str, tags: Dict[str, str]) -> Optional[str]:
        """Find a certificate this tool requested that is still awaiting validation.

        A run interrupted while waiting for issuance leaves such a
        certificate behind; reusing it avoids requesting a duplicate.

        Args:
            domain: Primary domain of the certificate
            tags: Tags the certificate must carry

        Returns:
            Certificate ARN, or None
        """
        for summary in self._summaries(['PENDING_VALIDATION']):
            if summary.get('DomainName') != domain:
                continue
            arn = summary['CertificateArn']
            certificate_tags = self._tags(arn)
            if all(certificate_tags.get(key) == value for key, value in tags.items()):
                return arn
        return None

    def request(
        self, domain: str, alternative_names: Optional[List[str]] = None,
        tags: Optional[Dict[str, str]] = None
    ) -> str:
        names = [domain] + [name for name in (alternative_names or []) if name != domain]
        params = {
            'DomainName': domain,
            'SubjectAlternativeNames': names,
            'ValidationMethod': 'DNS',
        }
        if tags:
            params['Tags'] = [{'Key': k, 'Value': v} for k, v in sorted(tags.items())]

        response = self.acm_client.request_certificate(**params)
        arn = response.get('CertificateArn')
        if not arn:
            raise ProvisioningError(f"Certificate request for {domain} returned no ARN")

        logger.info(f"Requested certificate for {domain}: {arn}")
        return arn

    def get_validation_records(self, certificate_arn: str) -> List[DnsRecord]:
        """Get the CNAME records that validate the certificate.

        ACM fills in the records a few seconds after the request, so this
        polls until every domain has one.

        Args:
            certificate_arn: Certificate to validate

        Returns:
            Unique validation records

        Raises:
            ProvisioningError: If the records do not appear in time
        """
        for attempt in range(self.poll_attempts):
            response = self.acm_client.describe_certificate(CertificateArn=certificate_arn)
            options = response['Certificate'].get('DomainValidationOptions', [])

            records = []
            for option in options:
                record = option.get('ResourceRecord')
                if record:
                    records.append(
                        DnsRecord(name=record['Name'], type=record['Type'], value=record['Value'])
                    )

            if options and len(records) == len(options):
                # SANs of the same apex share one record
                return list(dict.fromkeys(records))

            if attempt < self.poll_attempts - 1:
                self.sleep(self.poll_interval)

        raise ProvisioningError(
            f"No DNS validation records available for {certificate_arn}"
        )

    def wait_until_issued(self, certificate_arn: str) -> None:
        logger.info(f"Waiting for certificate {certificate_arn} to be issued...")
        waiter = self.acm_client.get_waiter('certificate_validated')
        waiter.wait(
            CertificateArn=certificate_arn,
            WaiterConfig={'Delay': 30, 'MaxAttempts': 60}
        )

    def delete(self, certificate_arn: str) -> None:
        try:
            self.acm_client.delete_certificate(CertificateArn=certificate_arn)
        except ClientError as e:
            if is_not_found_error(e):
                raise ResourceNotFoundError(
                    f"Certificate not found: {certificate_arn}", cause=e
                ) from e
            raise

        logger.info(f"Deleted certificate {certificate_arn}")

    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        found = []
        for summary in self._summaries(['ISSUED', 'PENDING_VALIDATION']):
            arn = summary['CertificateArn']
            tags = self._tags(arn)
            if not matches_managed_tags(tags, app, environment):
                continue

            domain = summary['DomainName']
            alternative_names = [
                name for name in summary.get('SubjectAlternativeNameSummaries', []) if name != domain
            ]
            found.append(DiscoveredResource(
                resource=ACMResourceState(
                    certificate_arn=arn,
                    domain_name=domain,
                    status=summary.get('Status'),
                    alternative_names=alternative_names or None,
                ),
                tags=tags,
            ))

        logger.debug(f"Found {len(found)} managed certificates")
        return found
