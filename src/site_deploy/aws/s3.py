"""S3 bucket manager for static website hosting."""

import gzip
import json
from typing import Dict, List, Optional

from botocore.exceptions import ClientError

from site_deploy.deployer.file_scanner import FileInfo
from site_deploy.state.models import S3ResourceState
from site_deploy.utils.aws_client import AWSClientManager
from site_deploy.utils.errors import (
    ProvisioningError,
    ResourceNotFoundError,
    get_error_code,
    is_not_found_error,
)
from site_deploy.utils.logging import get_logger

from .base import (
    DiscoveredResource,
    ObjectStoreManager,
    ResourceOutcome,
    matches_managed_tags,
    tags_from_list,
)

logger = get_logger(__name__)

# delete_objects accepts at most this many keys per call
DELETE_BATCH_SIZE = 1000

HTML_CACHE_CONTROL = "public, max-age=0, must-revalidate"
ASSET_CACHE_CONTROL = "public, max-age=31536000"

# get_bucket_tagging errors that mean "not ours" rather than a failure
UNTAGGED_BUCKET_ERRORS = {"NoSuchTagSet", "AccessDenied", "NoSuchBucket"}


def website_endpoint(bucket_name: str, region: str) -> str:
    """Host name of the bucket's static website endpoint."""
    if region == "us-east-1":
        return f"{bucket_name}.s3-website-us-east-1.amazonaws.com"
    return f"{bucket_name}.s3-website.{region}.amazonaws.com"


def public_read_policy(bucket_name: str) -> Dict:
    """Bucket policy granting anonymous GetObject."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "PublicReadGetObject",
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket_name}/*",
            }
        ],
    }


class S3BucketManager(ObjectStoreManager):
    """Manages the site bucket through boto3."""

    def __init__(self, client_manager: AWSClientManager, region: Optional[str] = None):
        """Initialize S3 bucket manager.

        Args:
            client_manager: Source of boto3 clients
            region: Bucket region (defaults to the client manager region)
        """
        self.s3_client = client_manager.get_client('s3', region_name=region)

    def exists(self, bucket_name: str) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=bucket_name)
            return True
        except ClientError as e:
            if is_not_found_error(e):
                return False
            raise

    def create(self, bucket_name: str, region: str) -> ResourceOutcome:
        """Create the bucket.

        Args:
            bucket_name: Globally unique bucket name
            region: Region to create the bucket in

        Returns:
            CREATED, or ALREADY_PRESENT if the caller already owns the bucket
        """
        create_params = {'Bucket': bucket_name}

        # Add location constraint for non-us-east-1 regions
        if region != 'us-east-1':
            create_params['CreateBucketConfiguration'] = {
                'LocationConstraint': region
            }

        try:
            self.s3_client.create_bucket(**create_params)
        except ClientError as e:
            if get_error_code(e) == 'BucketAlreadyOwnedByYou':
                logger.info(f"Bucket {bucket_name} already owned by this account")
                return ResourceOutcome.ALREADY_PRESENT
            raise

        logger.info(f"Created bucket {bucket_name} in {region}")
        return ResourceOutcome.CREATED

    def configure_website(
        self, bucket_name: str, index_document: str, error_document: Optional[str] = None
    ) -> None:
        website_config = {'IndexDocument': {'Suffix': index_document}}
        if error_document:
            website_config['ErrorDocument'] = {'Key': error_document}

        self.s3_client.put_bucket_website(
            Bucket=bucket_name,
            WebsiteConfiguration=website_config
        )

    def set_public_read_policy(self, bucket_name: str) -> None:
        # Block Public Access would reject the policy below
        self.s3_client.put_public_access_block(
            Bucket=bucket_name,
            PublicAccessBlockConfiguration={
                'BlockPublicAcls': False,
                'IgnorePublicAcls': False,
                'BlockPublicPolicy': False,
                'RestrictPublicBuckets': False,
            }
        )
        self.s3_client.put_bucket_policy(
            Bucket=bucket_name,
            Policy=json.dumps(public_read_policy(bucket_name))
        )

    def tag(self, bucket_name: str, tags: Dict[str, str]) -> None:
        self.s3_client.put_bucket_tagging(
            Bucket=bucket_name,
            Tagging={'TagSet': [{'Key': k, 'Value': v} for k, v in sorted(tags.items())]}
        )

    def upload_file(self, bucket_name: str, file: FileInfo, gzip_enabled: bool = True) -> None:
        """Upload one file.

        Gzip-able files are compressed in memory and sent with
        Content-Encoding gzip. Other files go through the managed transfer,
        which switches to multipart upload for large files.

        Args:
            bucket_name: Target bucket
            file: Scanned file to upload
            gzip_enabled: Whether gzip encoding may be used
        """
        extra_args = {
            'ContentType': file.content_type,
            'CacheControl': HTML_CACHE_CONTROL if file.key.endswith(('.html', '.htm'))
            else ASSET_CACHE_CONTROL,
        }

        if gzip_enabled and file.should_gzip:
            body = gzip.compress(file.absolute_path.read_bytes())
            self.s3_client.put_object(
                Bucket=bucket_name,
                Key=file.key,
                Body=body,
                ContentEncoding='gzip',
                **extra_args
            )
        else:
            self.s3_client.upload_file(
                str(file.absolute_path), bucket_name, file.key, ExtraArgs=extra_args
            )

        logger.debug(f"Uploaded s3://{bucket_name}/{file.key}")

    def delete_objects(self, bucket_name: str, keys: List[str]) -> None:
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = self.s3_client.delete_objects(
                Bucket=bucket_name,
                Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': True}
            )
            errors = response.get('Errors', [])
            if errors:
                failed = ', '.join(f"{e.get('Key')} ({e.get('Code')})" for e in errors)
                raise ProvisioningError(f"Failed to delete objects from {bucket_name}: {failed}")

    def delete(self, bucket_name: str) -> int:
        deleted = 0
        try:
            # Versioned buckets keep old versions and delete markers
            paginator = self.s3_client.get_paginator('list_object_versions')
            for page in paginator.paginate(Bucket=bucket_name):
                objects = [
                    {'Key': item['Key'], 'VersionId': item['VersionId']}
                    for item in page.get('Versions', []) + page.get('DeleteMarkers', [])
                ]
                if objects:
                    self.s3_client.delete_objects(
                        Bucket=bucket_name,
                        Delete={'Objects': objects, 'Quiet': True}
                    )
                    deleted += len(objects)

            self.s3_client.delete_bucket(Bucket=bucket_name)
        except ClientError as e:
            if is_not_found_error(e):
                raise ResourceNotFoundError(f"Bucket not found: {bucket_name}", cause=e) from e
            raise

        logger.info(f"Deleted bucket {bucket_name} ({deleted} objects)")
        return deleted

    def website_url(self, bucket_name: str, region: str) -> str:
        return f"http://{website_endpoint(bucket_name, region)}"

    def _bucket_region(self, bucket_name: str) -> str:
        location = self.s3_client.get_bucket_location(Bucket=bucket_name).get('LocationConstraint')
        # Legacy buckets report None for us-east-1 and EU for eu-west-1
        if not location:
            return 'us-east-1'
        if location == 'EU':
            return 'eu-west-1'
        return location

    def find_managed(
        self, app: Optional[str] = None, environment: Optional[str] = None
    ) -> List[DiscoveredResource]:
        """Find buckets by their managed tags.

        Args:
            app: Only buckets of this app (None for any)
            environment: Only buckets of this environment (None for any)

        Returns:
            Matching buckets in listing order
        """
        found = []
        for bucket in self.s3_client.list_buckets().get('Buckets', []):
            name = bucket['Name']
            try:
                response = self.s3_client.get_bucket_tagging(Bucket=name)
            except ClientError as e:
                if get_error_code(e) in UNTAGGED_BUCKET_ERRORS:
                    continue
                raise

            tags = tags_from_list(response.get('TagSet', []))
            if not matches_managed_tags(tags, app, environment):
                continue

            region = self._bucket_region(name)
            found.append(DiscoveredResource(
                resource=S3ResourceState(
                    bucket_name=name,
                    region=region,
                    website_url=self.website_url(name, region),
                    tags=tags,
                ),
                tags=tags,
            ))

        logger.debug(f"Found {len(found)} managed buckets")
        return found
