"""Chunked copy with incremental size enforcement, shared by store adapters."""

import hashlib
import re
import uuid
from datetime import datetime, timezone
from typing import BinaryIO, Optional, Tuple

from kycdesk.domain.attachments.attachment_ref import AttachmentRef
from kycdesk.domain.attachments.errors import (
    AttachmentNotFound,
    EmptyAttachment,
    SizeLimitExceeded,
    UnsupportedMediaType,
)
from kycdesk.domain.attachments.validation import (
    SUPPORTED_MEDIA_TYPES,
    is_supported_media_type,
    normalize_media_type,
)

_ATTACHMENT_ID = re.compile(r"^[0-9a-f]{32}$")


def new_attachment_id() -> str:
    """Random 128-bit id, hex encoded. Never derived from the filename."""
    return uuid.uuid4().hex


def check_attachment_id(attachment_id: str) -> str:
    """Reject ids that could not have been issued by a store.

    Raises:
        AttachmentNotFound: For anything that is not a 32-char hex id
    """
    if not isinstance(attachment_id, str) or not _ATTACHMENT_ID.match(attachment_id):
        raise AttachmentNotFound(str(attachment_id))
    return attachment_id


def precheck_upload(media_type: str, declared_size: Optional[int], max_size: int) -> str:
    """Checks that run before any byte is read or written.

    Returns:
        str: Normalized media type

    Raises:
        UnsupportedMediaType: Media type not on the allow-list
        SizeLimitExceeded: Declared size already over the limit
    """
    if not is_supported_media_type(media_type):
        raise UnsupportedMediaType(media_type, SUPPORTED_MEDIA_TYPES)
    if declared_size is not None and declared_size > max_size:
        raise SizeLimitExceeded(max_size)
    return normalize_media_type(media_type)


def copy_limited(
    source: BinaryIO,
    sink: BinaryIO,
    max_size: int,
    chunk_size: int,
) -> Tuple[int, str]:
    """Copy source to sink in chunks, failing as soon as max_size is passed.

    Returns:
        Tuple of (bytes copied, sha256 hex digest)

    Raises:
        SizeLimitExceeded: Content longer than max_size (sink holds a prefix)
        EmptyAttachment: Source yielded no bytes
    """
    sha256_hash = hashlib.sha256()
    size_bytes = 0

    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        size_bytes += len(chunk)
        if size_bytes > max_size:
            raise SizeLimitExceeded(max_size)
        sha256_hash.update(chunk)
        sink.write(chunk)

    if size_bytes == 0:
        raise EmptyAttachment()

    return size_bytes, sha256_hash.hexdigest()


def build_ref(
    attachment_id: str,
    filename: str,
    media_type: str,
    size_bytes: int,
    sha256: str,
) -> AttachmentRef:
    return AttachmentRef(
        id=attachment_id,
        original_filename=filename or "attachment",
        media_type=media_type,
        byte_size=size_bytes,
        stored_at=datetime.now(timezone.utc),
        sha256=sha256,
    )
