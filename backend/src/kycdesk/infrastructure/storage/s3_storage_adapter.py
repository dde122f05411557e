"""S3 Storage Adapter - AttachmentStorePort implementation using boto3.

Provides S3-compatible storage for AWS S3, MinIO, and other S3-compatible
services. Object keys are {prefix}/{id}; nothing in the key comes from the
client's filename.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import logging
import tempfile
from typing import BinaryIO, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from kycdesk.domain.attachments.attachment_ref import AttachmentRef
from kycdesk.domain.attachments.errors import AttachmentNotFound, StorageError
from kycdesk.domain.attachments.ports.attachment_store_port import AttachmentStorePort

from .streaming import (
    build_ref,
    check_attachment_id,
    copy_limited,
    new_attachment_id,
    precheck_upload,
)

logger = logging.getLogger(__name__)

# Uploads up to this size stay in memory while being checked
SPOOL_MAX_MEMORY = 1024 * 1024


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "Unknown")


class S3AttachmentStore(AttachmentStorePort):
    """S3-compatible attachment store using boto3.

    Uploads are spooled (memory, then temp file) while the size limit is
    enforced chunk by chunk; ``put_object`` is only called for content that
    passed every check, so rejected uploads never reach the bucket.

    Example:
        config = load_storage_config(get_settings())
        store = S3AttachmentStore(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            bucket_name=config.bucket_name,
            region=config.region,
        )
        await store.initialize()
    """

    backend_name = "s3"

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "us-east-1",
        max_size_bytes: int = 5 * 1024 * 1024,
        chunk_size: int = 64 * 1024,
        key_prefix: str = "attachments",
    ):
        """Initialize S3 attachment store.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID
            secret_key: S3 secret access key
            bucket_name: S3 bucket name
            region: AWS region (default: 'us-east-1')
            max_size_bytes: Per-attachment size limit
            chunk_size: Read size while streaming uploads
            key_prefix: Key prefix for attachment objects

        Raises:
            StorageError: If S3 client initialization fails
        """
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except NoCredentialsError as e:
            raise StorageError(f"Invalid S3 credentials: {e}")
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

        self.bucket_name = bucket_name
        self.region = region
        self.max_size_bytes = max_size_bytes
        self.chunk_size = chunk_size
        self.key_prefix = key_prefix.strip("/")

        logger.info(
            f"Initialized S3 attachment store: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    def _key_for(self, attachment_id: str) -> str:
        check_attachment_id(attachment_id)
        return f"{self.key_prefix}/{attachment_id}"

    async def initialize(self) -> None:
        """Verify that the configured bucket exists.

        Raises:
            StorageError: If bucket check fails or bucket doesn't exist
        """
        try:
            await self._run(self.s3_client.head_bucket, Bucket=self.bucket_name)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in ("404", "NoSuchBucket"):
                raise StorageError(
                    f"Bucket '{self.bucket_name}' does not exist. "
                    f"Create it first or update S3_BUCKET_NAME."
                )
            raise StorageError(f"Failed to verify bucket: {error_code}")
        except Exception as e:
            raise StorageError(f"Failed to verify bucket: {e}")
        logger.info(f"Verified bucket exists: {self.bucket_name}")

    async def put(
        self,
        stream: BinaryIO,
        media_type: str,
        filename: str,
        declared_size: Optional[int] = None,
    ) -> AttachmentRef:
        """Store an attachment as an S3 object.

        Raises:
            UnsupportedMediaType, SizeLimitExceeded, EmptyAttachment: Nothing uploaded
            StorageError: If upload fails
        """
        media_type = precheck_upload(media_type, declared_size, self.max_size_bytes)
        attachment_id = new_attachment_id()
        storage_key = self._key_for(attachment_id)

        def _upload():
            with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY) as spool:
                size_bytes, sha256 = copy_limited(
                    stream, spool, self.max_size_bytes, self.chunk_size
                )
                spool.seek(0)
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=storage_key,
                    Body=spool,
                    ContentType=media_type,
                    ContentLength=size_bytes,
                    Metadata={
                        "sha256": sha256,
                        "original_filename": quote(filename or "", safe=""),
                    },
                )
                return size_bytes, sha256

        try:
            size_bytes, sha256 = await self._run(_upload)
        except StorageError:
            raise
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(
                f"S3 upload failed: storage_key={storage_key}, "
                f"error={error_code}, message={e}"
            )
            raise StorageError(f"Failed to upload attachment: {error_code}")
        except OSError as e:
            logger.error(f"Spooling upload failed: storage_key={storage_key}, error={e}")
            raise StorageError(f"Failed to upload attachment: {e}")

        logger.info(
            f"Uploaded attachment: storage_key={storage_key}, "
            f"sha256={sha256}, size={size_bytes}, media_type={media_type}"
        )
        return build_ref(attachment_id, filename, media_type, size_bytes, sha256)

    async def get(self, attachment_id: str) -> BinaryIO:
        """Retrieve an attachment.

        Returns:
            BinaryIO: Streaming body (caller must close)

        Raises:
            AttachmentNotFound: If the object doesn't exist
            StorageError: If retrieval fails
        """
        storage_key = self._key_for(attachment_id)
        try:
            response = await self._run(
                self.s3_client.get_object,
                Bucket=self.bucket_name,
                Key=storage_key,
            )
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in ("NoSuchKey", "404"):
                logger.warning(f"Attachment not found: storage_key={storage_key}")
                raise AttachmentNotFound(attachment_id)
            logger.error(
                f"S3 retrieval failed: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to retrieve attachment: {error_code}")

        logger.info(f"Retrieved attachment: storage_key={storage_key}")
        return response["Body"]

    async def delete(self, attachment_id: str) -> None:
        """Delete an attachment.

        S3 deletes are silent for missing keys, so existence is checked first
        to report AttachmentNotFound consistently with the local store.
        """
        storage_key = self._key_for(attachment_id)
        if not await self.exists(attachment_id):
            logger.info(f"Attachment not found for deletion: storage_key={storage_key}")
            raise AttachmentNotFound(attachment_id)

        try:
            await self._run(
                self.s3_client.delete_object,
                Bucket=self.bucket_name,
                Key=storage_key,
            )
        except ClientError as e:
            error_code = _error_code(e)
            logger.error(
                f"S3 deletion failed: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to delete attachment: {error_code}")

        logger.info(f"Deleted attachment: storage_key={storage_key}")

    async def exists(self, attachment_id: str) -> bool:
        """Check if an attachment exists (HEAD request).

        Raises:
            StorageError: For errors other than a missing object
        """
        try:
            storage_key = self._key_for(attachment_id)
        except AttachmentNotFound:
            return False
        try:
            await self._run(
                self.s3_client.head_object,
                Bucket=self.bucket_name,
                Key=storage_key,
            )
            return True
        except ClientError as e:
            error_code = _error_code(e)
            if error_code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.warning(
                f"Error checking attachment existence: storage_key={storage_key}, "
                f"error={error_code}"
            )
            raise StorageError(f"Failed to check attachment: {error_code}")
