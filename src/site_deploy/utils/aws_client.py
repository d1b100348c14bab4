"""AWS client management and session handling."""

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from typing import Optional, Dict, Any
from dataclasses import dataclass
from site_deploy.utils.logging import get_logger

logger = get_logger(__name__)


# CloudFront only accepts ACM certificates issued in this region
CLOUDFRONT_CERTIFICATE_REGION = 'us-east-1'


@dataclass
class AWSCredentials:
    """AWS credential information."""
    account_id: str
    user_arn: str
    region: str
    profile: Optional[str] = None


class AWSClientManager:
    """Manages the boto3 session and cached service clients."""

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        max_pool_connections: int = 50
    ):
        """Initialize AWS client manager.

        Args:
            profile: AWS profile name to use
            region: Default AWS region for clients
            max_pool_connections: Connection pool size; must cover the upload pool width
        """
        self.profile = profile
        self.region = region
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._credentials: Optional[AWSCredentials] = None

        # botocore's own retries stay at standard; transient errors beyond
        # that are handled by RetryStrategy with per-service vocabularies
        self._boto_config = Config(
            max_pool_connections=max_pool_connections,
            retries={'mode': 'standard', 'max_attempts': 3},
            connect_timeout=10,
            read_timeout=60
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            kwargs = {}
            if self.profile:
                kwargs['profile_name'] = self.profile
            if self.region:
                kwargs['region_name'] = self.region

            self._session = boto3.Session(**kwargs)
            logger.info(f"Created AWS session - Region: {self._session.region_name}, "
                        f"Profile: {self.profile or 'default'}")

        return self._session

    @property
    def region_name(self) -> str:
        """Region clients are created in when none is given."""
        return self.region or self.session.region_name or 'us-east-1'

    def get_client(self, service_name: str, region_name: Optional[str] = None):
        """Get a cached boto3 client for a service.

        Args:
            service_name: AWS service name (e.g., 's3', 'cloudfront')
            region_name: Region override (ACM for CloudFront must be us-east-1)

        Returns:
            Boto3 client for the service
        """
        region = region_name or self.region_name
        cache_key = f"{service_name}:{region}"

        if cache_key not in self._clients:
            self._clients[cache_key] = self.session.client(
                service_name, region_name=region, config=self._boto_config
            )
            logger.debug(f"Created {service_name} client (cached: {cache_key})")

        return self._clients[cache_key]

    def validate_credentials(self) -> AWSCredentials:
        """Validate AWS credentials and return credential information.

        Returns:
            AWSCredentials object with account and caller information

        Raises:
            NoCredentialsError: If no credentials are found
            PartialCredentialsError: If credentials are incomplete
            ClientError: If credentials are invalid
        """
        if self._credentials is not None:
            return self._credentials

        try:
            identity = self.get_client('sts').get_caller_identity()
        except (NoCredentialsError, PartialCredentialsError):
            logger.error("No usable AWS credentials found")
            raise
        except ClientError as e:
            logger.error(f"Failed to validate AWS credentials: {e}")
            raise

        self._credentials = AWSCredentials(
            account_id=identity['Account'],
            user_arn=identity['Arn'],
            region=self.region_name,
            profile=self.profile
        )
        logger.info(f"AWS credentials validated - Account: {self._credentials.account_id}, "
                    f"Region: {self._credentials.region}")
        return self._credentials
