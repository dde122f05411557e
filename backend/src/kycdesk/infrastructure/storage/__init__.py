"""Attachment store adapters and the bootstrap factory."""

from kycdesk.domain.attachments.ports.attachment_store_port import AttachmentStorePort

from .local_storage_adapter import LocalAttachmentStore
from .s3_storage_adapter import S3AttachmentStore
from .storage_config import StorageConfig, load_storage_config, validate_storage_config


def build_store(config: StorageConfig) -> AttachmentStorePort:
    """Construct the configured adapter (not yet initialized).

    Raises:
        ValueError: If the configuration is invalid
    """
    validate_storage_config(config)
    if config.backend == "s3":
        return S3AttachmentStore(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            bucket_name=config.bucket_name,
            region=config.region,
            max_size_bytes=config.max_size_bytes,
            chunk_size=config.chunk_size,
        )
    return LocalAttachmentStore(
        root=config.local_root,
        max_size_bytes=config.max_size_bytes,
        chunk_size=config.chunk_size,
    )


async def initialize_store(config: StorageConfig) -> AttachmentStorePort:
    """Build and initialize the attachment store once at process start.

    The returned handle is passed to the registry; there is no module-level
    store instance.
    """
    store = build_store(config)
    await store.initialize()
    return store


__all__ = [
    "LocalAttachmentStore",
    "S3AttachmentStore",
    "StorageConfig",
    "build_store",
    "initialize_store",
    "load_storage_config",
    "validate_storage_config",
]
