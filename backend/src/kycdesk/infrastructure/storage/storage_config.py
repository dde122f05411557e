"""Storage configuration for the attachment store.

Derived from application settings. Supports the local filesystem (single
node, development) and S3-compatible object storage (MinIO in development,
AWS S3 in production) behind the same port.
"""

from dataclasses import dataclass
from typing import Optional

from kycdesk.config import Settings


@dataclass
class StorageConfig:
    """Configuration for the attachment store.

    Attributes:
        backend: "local" or "s3"
        local_root: Root directory for the local backend
        endpoint_url: S3 endpoint URL (e.g., 'http://localhost:9000' for MinIO,
                      None for AWS S3 which uses default regional endpoints)
        access_key: S3 access key ID
        secret_key: S3 secret access key
        bucket_name: S3 bucket name for attachment objects
        region: AWS region (default: 'us-east-1')
        max_size_bytes: Per-attachment size limit
        chunk_size: Read size while streaming uploads
    """
    backend: str
    local_root: str
    endpoint_url: Optional[str]
    access_key: str
    secret_key: str
    bucket_name: str
    region: str = "us-east-1"
    max_size_bytes: int = 5 * 1024 * 1024
    chunk_size: int = 64 * 1024


def load_storage_config(settings: Settings) -> StorageConfig:
    """Build storage configuration from settings.

    Example:
        # Local filesystem (development):
        STORAGE_BACKEND=local
        LOCAL_STORAGE_ROOT=./var/attachments

        # MinIO:
        STORAGE_BACKEND=s3
        S3_ENDPOINT_URL=http://localhost:9000
        S3_ACCESS_KEY_ID=minioadmin
        S3_SECRET_ACCESS_KEY=minioadmin
        S3_BUCKET_NAME=kycdesk-attachments

        # AWS S3 (production):
        STORAGE_BACKEND=s3
        # S3_ENDPOINT_URL not set (uses AWS defaults)
        S3_REGION=ap-south-1
    """
    return StorageConfig(
        backend=settings.STORAGE_BACKEND,
        local_root=settings.LOCAL_STORAGE_ROOT,
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        access_key=settings.S3_ACCESS_KEY_ID,
        secret_key=settings.S3_SECRET_ACCESS_KEY,
        bucket_name=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
        max_size_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
        chunk_size=settings.UPLOAD_CHUNK_SIZE,
    )


def validate_storage_config(config: StorageConfig) -> None:
    """Validate storage configuration.

    Args:
        config: Storage configuration to validate

    Raises:
        ValueError: If configuration is invalid
    """
    if config.max_size_bytes <= 0:
        raise ValueError("Storage max_size_bytes must be positive")

    if config.chunk_size <= 0:
        raise ValueError("Storage chunk_size must be positive")

    if config.backend == "local":
        if not config.local_root:
            raise ValueError("LOCAL_STORAGE_ROOT is required for the local backend")
        return

    if config.backend != "s3":
        raise ValueError(f"Unknown storage backend: {config.backend}")

    if not config.access_key:
        raise ValueError("Storage access_key is required")

    if not config.secret_key:
        raise ValueError("Storage secret_key is required")

    if not config.bucket_name:
        raise ValueError("Storage bucket_name is required")

    if config.endpoint_url:
        # MinIO configuration
        if not config.endpoint_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid endpoint_url: {config.endpoint_url}. "
                "Must start with http:// or https://"
            )
    else:
        # AWS S3 configuration
        if not config.region:
            raise ValueError("AWS region is required when using S3 (S3_ENDPOINT_URL not set)")
