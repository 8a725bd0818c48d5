"""
Object storage service.

WHAT: Thin wrapper over an S3-compatible bucket store (Backblaze B2 in
production).

WHY: The artifact copy only needs "get bytes" and "put bytes". Wrapping
boto3 keeps botocore exceptions out of the billing code and lets tests
swap in a mock client.

HOW: boto3 client built from settings; every client error becomes a
StorageError with the bucket and key as context.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stitchpay.core.config import settings
from stitchpay.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    """Object body plus the metadata the store reported."""

    key: str
    body: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.body)


class StorageService:
    """
    Service for reading and writing bucket objects.

    Example:
        storage = get_storage_service()
        obj = storage.download("stock-design-files", "designs/rose.zip")
        storage.upload("order-attachments", "orders/ORD-1/rose.zip", obj.body)
    """

    def __init__(self, s3_client=None):
        """
        Initialize StorageService.

        Args:
            s3_client: Pre-built client (tests); built from settings if None
        """
        self.s3_client = s3_client or boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT,
            aws_access_key_id=settings.S3_ACCESS_KEY,
            aws_secret_access_key=settings.S3_SECRET_KEY,
            region_name=settings.S3_REGION,
        )

    def download(self, bucket: str, key: str) -> StoredObject:
        """
        Read a whole object.

        Raises:
            StorageError: If the object is missing or the store fails
        """
        try:
            response = self.s3_client.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to download object",
                bucket=bucket,
                object_key=key,
                error=str(e),
            )
        return StoredObject(key=key, body=body, content_type=response.get("ContentType"))

    def upload(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        """
        Write an object, replacing any existing object at the key.

        Raises:
            StorageError: If the store rejects the write
        """
        try:
            self.s3_client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to upload object",
                bucket=bucket,
                object_key=key,
                error=str(e),
            )
        logger.info("Stored object", extra={"bucket": bucket, "object_key": key, "size": len(body)})


def get_storage_service() -> StorageService:
    """FastAPI dependency returning a settings-configured storage service."""
    return StorageService()
