"""CloudFront distribution manager."""

import time
import uuid
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from site_deploy.state.models import CloudFrontResourceState
from site_deploy.utils.aws_client import AWSClientManager
from site_deploy.utils.errors import ProvisioningError, ResourceNotFoundError, is_not_found_error
from site_deploy.utils.logging import get_logger

from .base import (
    CdnManager,
    DiscoveredResource,
    DistributionInfo,
    DistributionSettings,
    matches_managed_tags,
    tags_from_list,
)
from .s3 import website_endpoint

logger = get_logger(__name__)

DEFAULT_PRICE_CLASS = "PriceClass_100"
DEFAULT_TTL = 86400  # 1 day
MAX_TTL = 31536000  # 1 year
MIN_TTL = 0

# Changes to a distribution usually take 5-15 minutes to propagate
WAIT_DELAY_SECONDS = 20
WAIT_MAX_ATTEMPTS = 90


def _caller_reference() -> str:
    return f"site-deploy-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def _to_info(distribution: Dict[str, Any]) -> DistributionInfo:
    config = distribution.get('DistributionConfig', {})
    return DistributionInfo(
        distribution_id=distribution['Id'],
        domain_name=distribution['DomainName'],
        status=distribution.get('Status', ''),
        enabled=config.get('Enabled', False),
        aliases=list(config.get('Aliases', {}).get('Items', [])),
    )


def _apply_custom_domain(config: Dict[str, Any], aliases: List[str], certificate_arn: str) -> None:
    config['Aliases'] = {'Quantity': len(aliases), 'Items': aliases}
    config['ViewerCertificate'] = {
        'ACMCertificateArn': certificate_arn,
        'SSLSupportMethod': 'sni-only',
        'MinimumProtocolVersion': 'TLSv1.2_2021',
    }


class CloudFrontManager(CdnManager):
    """Manages the site distribution through boto3."""

    def __init__(
        self,
        client_manager: AWSClientManager,
        wait_delay: int = WAIT_DELAY_SECONDS,
        wait_max_attempts: int = WAIT_MAX_ATTEMPTS
    ):
        """Initialize CloudFront manager.

        Args:
            client_manager: Source of boto3 clients
            wait_delay: Seconds between status polls while waiting for deployment
            wait_max_attempts: Status polls before giving up
        """
        self.cloudfront_client = client_manager.get_client('cloudfront', region_name='us-east-1')
        self.wait_delay = wait_delay
        self.wait_max_attempts = wait_max_attempts

    def exists(self, distribution_id: str) -> bool:
        return self.get(distribution_id) is not None

    def get(self, distribution_id: str) -> Optional[DistributionInfo]:
        try:
            response = self.cloudfront_client.get_distribution(Id=distribution_id)
        except ClientError as e:
            if is_not_found_error(e):
                return None
            raise
        return _to_info(response['Distribution'])

    def create(self, settings: DistributionSettings) -> DistributionInfo:
        """Create a distribution with the bucket website endpoint as origin.

        Args:
            settings: Desired configuration; origin_bucket and origin_region are required

        Returns:
            The new distribution (status InProgress)
        """
        if not settings.origin_bucket or not settings.origin_region:
            raise ProvisioningError("CloudFront origin bucket and region are required")

        origin_id = f"S3-{settings.origin_bucket}"
        config = {
            'CallerReference': _caller_reference(),
            'Comment': f"Created by site-deploy for {settings.origin_bucket}",
            'Enabled': True if settings.enabled is None else settings.enabled,
            'DefaultRootObject': settings.index_document or 'index.html',
            'Origins': {
                'Quantity': 1,
                'Items': [{
                    'Id': origin_id,
                    'DomainName': website_endpoint(settings.origin_bucket, settings.origin_region),
                    'CustomOriginConfig': {
                        'HTTPPort': 80,
                        'HTTPSPort': 443,
                        # Website endpoints only speak HTTP
                        'OriginProtocolPolicy': 'http-only',
                        'OriginSslProtocols': {'Quantity': 1, 'Items': ['TLSv1.2']},
                    },
                }],
            },
            'DefaultCacheBehavior': {
                'TargetOriginId': origin_id,
                'ViewerProtocolPolicy': 'redirect-to-https',
                'AllowedMethods': {
                    'Quantity': 2,
                    'Items': ['GET', 'HEAD'],
                    'CachedMethods': {'Quantity': 2, 'Items': ['GET', 'HEAD']},
                },
                'Compress': True,
                'ForwardedValues': {
                    'QueryString': False,
                    'Cookies': {'Forward': 'none'},
                    'Headers': {'Quantity': 0},
                },
                'MinTTL': MIN_TTL if settings.min_ttl is None else settings.min_ttl,
                'DefaultTTL': DEFAULT_TTL if settings.default_ttl is None else settings.default_ttl,
                'MaxTTL': MAX_TTL if settings.max_ttl is None else settings.max_ttl,
                'TrustedSigners': {'Enabled': False, 'Quantity': 0},
            },
            'PriceClass': settings.price_class or DEFAULT_PRICE_CLASS,
            'IsIPV6Enabled': True if settings.ipv6 is None else settings.ipv6,
            'ViewerCertificate': {'CloudFrontDefaultCertificate': True},
        }

        if settings.aliases and settings.certificate_arn:
            _apply_custom_domain(config, settings.aliases, settings.certificate_arn)

        if settings.tags:
            response = self.cloudfront_client.create_distribution_with_tags(
                DistributionConfigWithTags={
                    'DistributionConfig': config,
                    'Tags': {'Items': [
                        {'Key': k, 'Value': v} for k, v in sorted(settings.tags.items())
                    ]},
                }
            )
        else:
            response = self.cloudfront_client.create_distribution(DistributionConfig=config)

        info = _to_info(response['Distribution'])
        logger.info(f"Created CloudFront distribution {info.distribution_id} ({info.domain_name})")
        return info

    def update(self, distribution_id: str, settings: DistributionSettings) -> DistributionInfo:
        try:
            response = self.cloudfront_client.get_distribution_config(Id=distribution_id)
        except ClientError as e:
            if is_not_found_error(e):
                raise ResourceNotFoundError(
                    f"Distribution not found: {distribution_id}", cause=e
                ) from e
            raise

        config = response['DistributionConfig']
        etag = response['ETag']
        behavior = config['DefaultCacheBehavior']

        if settings.enabled is not None:
            config['Enabled'] = settings.enabled
        if settings.price_class:
            config['PriceClass'] = settings.price_class
        if settings.default_ttl is not None:
            behavior['DefaultTTL'] = settings.default_ttl
        if settings.max_ttl is not None:
            behavior['MaxTTL'] = settings.max_ttl
        if settings.min_ttl is not None:
            behavior['MinTTL'] = settings.min_ttl
        if settings.ipv6 is not None:
            config['IsIPV6Enabled'] = settings.ipv6
        if settings.index_document:
            config['DefaultRootObject'] = settings.index_document
        if settings.aliases and settings.certificate_arn:
            _apply_custom_domain(config, settings.aliases, settings.certificate_arn)

        response = self.cloudfront_client.update_distribution(
            Id=distribution_id,
            DistributionConfig=config,
            IfMatch=etag
        )
        logger.info(f"Updated CloudFront distribution {distribution_id}")
        return _to_info(response['Distribution'])

    def wait_until_deployed(self, distribution_id: str) -> None:
        logger.info(f"Waiting for distribution {distribution_id} to deploy...")
        waiter = self.cloudfront_client.get_waiter('distribution_deployed')
        waiter.wait(
            Id=distribution_id,
            WaiterConfig={'Delay': self.wait_delay, 'MaxAttempts': self.wait_max_attempts}
        )

    def delete(self, distribution_id: str) -> None:
        try:
            response = self.cloudfront_client.get_distribution_config(Id=distribution_id)
            if response['DistributionConfig'].get('Enabled'):
                raise ProvisioningError(
                    f"Distribution {distribution_id} must be disabled before deletion"
                )
            self.cloudfront_client.delete_distribution(
                Id=distribution_id,
                IfMatch=response['ETag']
            )
        except ClientError as e:
            if is_not_found_error(e):
                raise ResourceNotFoundError(
                    f"Distribution not found: {distribution_id}", cause=e
                ) from e
            raise

        logger.info(f"Deleted CloudFront distribution {distribution_id}")

    def invalidate(self, distribution_id: str, paths: List[str]) -> str:
        items = [path if path.startswith('/') else f"/{path}" for path in paths]
        response = self.cloudfront_client.create_invalidation(
            DistributionId=distribution_id,
            InvalidationBatch={
                'Paths': {'Quantity': len(items), 'Items': items},
                'CallerReference': _caller_reference(),
            }
        )
        invalidation_id = response['Invalidation']['Id']
        logger.info(f"Created invalidation {invalidation_id} for {len(items)} paths")
        return invalidation_id

    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        found = []
        paginator = self.cloudfront_client.get_paginator('list_distributions')
        for page in paginator.paginate():
            for summary in page.get('DistributionList', {}).get('Items', []):
                response = self.cloudfront_client.list_tags_for_resource(Resource=summary['ARN'])
                tags = tags_from_list(response.get('Tags', {}).get('Items', []))
                if not matches_managed_tags(tags, app, environment):
                    continue

                aliases = list(summary.get('Aliases', {}).get('Items', []))
                found.append(DiscoveredResource(
                    resource=CloudFrontResourceState(
                        distribution_id=summary['Id'],
                        domain_name=summary['DomainName'],
                        distribution_url=f"https://{summary['DomainName']}",
                        aliases=aliases or None,
                    ),
                    tags=tags,
                ))

        logger.debug(f"Found {len(found)} managed distributions")
        return found
