"""Cloudflare R2 storage service using S3-compatible API"""
import logging
from typing import Optional
from urllib.parse import quote
from botocore.exceptions import ClientError
import boto3
from botocore.config import Config

from sfgs_mailer.core.config import settings

logger = logging.getLogger(__name__)


class ObjectNotFound(Exception):
    """The requested key does not exist in the bucket"""

    def __init__(self, object_key: str):
        self.object_key = object_key
        super().__init__(f"Object not found in R2: {object_key}")


def _encode_object_key_for_url(object_key: str) -> str:
    """Properly URL-encode object key path segments

    Encodes each path segment individually while preserving forward slashes
    as path separators.

    Args:
        object_key: R2 object key (e.g., "reports/SFGS-001 term 2.pdf")

    Returns:
        URL-encoded object key with properly encoded path segments
    """
    if not object_key:
        return ""

    segments = object_key.split('/')
    encoded_segments = [quote(segment, safe='') for segment in segments]
    return '/'.join(encoded_segments)


def public_url(object_key: str) -> Optional[str]:
    """Public custom-domain URL for a key, or None when R2_PUBLIC_DOMAIN is not configured"""
    if not object_key or not settings.R2_PUBLIC_DOMAIN:
        return None
    domain = settings.R2_PUBLIC_DOMAIN.rstrip('/')
    if not domain.startswith(("http://", "https://")):
        domain = f"https://{domain}"
    return f"{domain}/{_encode_object_key_for_url(object_key.lstrip('/'))}"


class R2Service:
    """Service for interacting with Cloudflare R2 storage"""

    def __init__(self):
        """Initialize R2 service with configuration from settings"""
        if not settings.R2_ACCESS_KEY_ID or not settings.R2_SECRET_ACCESS_KEY:
            raise ValueError("R2 configuration is missing. Set R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY environment variables.")

        if not settings.R2_BUCKET_NAME:
            raise ValueError("R2_BUCKET_NAME is not set. Set R2_BUCKET_NAME environment variable.")

        self.bucket = settings.R2_BUCKET_NAME
        self.endpoint_url = settings.R2_ENDPOINT_URL
        if not self.endpoint_url:
            if not settings.R2_ACCOUNT_ID:
                raise ValueError("R2_ENDPOINT_URL is not set. Set R2_ENDPOINT_URL or R2_ACCOUNT_ID environment variable.")
            self.endpoint_url = f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"

        # Create S3 client with R2 endpoint
        self.s3_client = boto3.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4')
        )
        logger.info(f"R2Service initialized for bucket: {self.bucket}")

    def download_object(self, object_key: str) -> bytes:
        """Download an object into memory

        Args:
            object_key: R2 object key (path in bucket)

        Returns:
            The object's bytes

        Raises:
            ObjectNotFound: If the key does not exist
            ClientError: For any other storage failure
        """
        if not object_key:
            raise ObjectNotFound(object_key)

        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=object_key)
            body = response['Body'].read()
            logger.debug(f"Downloaded {object_key} from R2 ({len(body)} bytes)")
            return body
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code in ('NoSuchKey', '404'):
                logger.warning(f"Object not found in R2: {object_key}")
                raise ObjectNotFound(object_key) from e
            logger.error(f"Failed to download {object_key} from R2: {e}", exc_info=True)
            raise

    def public_url(self, object_key: str) -> Optional[str]:
        return public_url(object_key)


# Global R2 service instance (lazy initialization)
_r2_service: Optional[R2Service] = None


def get_r2_service() -> R2Service:
    """Get or create R2 service instance (lazy initialization)

    Returns:
        R2Service instance

    Raises:
        ValueError: If R2 configuration is missing
    """
    global _r2_service
    if _r2_service is None:
        _r2_service = R2Service()
    return _r2_service
