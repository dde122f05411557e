"""Attachment domain: references, validation and the storage port."""

from .attachment_ref import (
    ATTACHMENT_REF_SCHEMA,
    REQUIRED_SLOTS,
    AttachmentDownload,
    AttachmentRef,
    AttachmentSlot,
    AttachmentUpload,
)
from .errors import (
    AttachmentNotFound,
    EmptyAttachment,
    LegacyAttachmentRef,
    SizeLimitExceeded,
    StorageError,
    UnsupportedMediaType,
)
from .ports import AttachmentStorePort
from .validation import SUPPORTED_MEDIA_TYPES, is_supported_media_type, normalize_media_type

__all__ = [
    "ATTACHMENT_REF_SCHEMA",
    "REQUIRED_SLOTS",
    "AttachmentDownload",
    "AttachmentRef",
    "AttachmentSlot",
    "AttachmentUpload",
    "AttachmentNotFound",
    "EmptyAttachment",
    "LegacyAttachmentRef",
    "SizeLimitExceeded",
    "StorageError",
    "UnsupportedMediaType",
    "AttachmentStorePort",
    "SUPPORTED_MEDIA_TYPES",
    "is_supported_media_type",
    "normalize_media_type",
]
