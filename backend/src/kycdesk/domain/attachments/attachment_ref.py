"""AttachmentRef - canonical, opaque pointer to stored attachment bytes.

A submission slot persists only the serialized form of this value. The ``id``
is assigned by the attachment store and is the sole lookup key; the original
filename is kept for display and download headers only.

Serialized refs carry a ``schema`` tag. Slots written before the tag existed
(bare path strings, upload-middleware objects) are rejected with
LegacyAttachmentRef and must be rewritten by the attachment migration.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, Optional

from .errors import LegacyAttachmentRef


ATTACHMENT_REF_SCHEMA = "attachment_ref/v2"


class AttachmentSlot(str, Enum):
    """The two required attachment slots of a submission."""

    PRIMARY_ID_DOCUMENT = "primary_id_document"
    SIGNATURE_OR_SECOND_DOCUMENT = "signature_or_second_document"


REQUIRED_SLOTS = (
    AttachmentSlot.PRIMARY_ID_DOCUMENT,
    AttachmentSlot.SIGNATURE_OR_SECOND_DOCUMENT,
)


@dataclass(frozen=True)
class AttachmentRef:
    """Immutable reference to attachment content held by the store.

    Attributes:
        id: Store-assigned identifier (never derived from the filename)
        original_filename: Client-supplied name, display only
        media_type: Normalized media type (image/jpeg, image/png, application/pdf)
        byte_size: Exact number of bytes stored
        stored_at: UTC timestamp of the write
        sha256: Hex digest computed while the bytes were written
    """

    id: str
    original_filename: str
    media_type: str
    byte_size: int
    stored_at: datetime
    sha256: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize for a JSON slot column."""
        return {
            "schema": ATTACHMENT_REF_SCHEMA,
            "id": self.id,
            "original_filename": self.original_filename,
            "media_type": self.media_type,
            "byte_size": self.byte_size,
            "stored_at": self.stored_at.isoformat(),
            "sha256": self.sha256,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AttachmentRef":
        """Deserialize a slot value.

        Raises:
            LegacyAttachmentRef: If the value is not a tagged canonical ref
        """
        if not is_canonical(data):
            raise LegacyAttachmentRef(describe_shape(data))

        stored_at = datetime.fromisoformat(data["stored_at"])
        if stored_at.tzinfo is None:
            stored_at = stored_at.replace(tzinfo=timezone.utc)

        return cls(
            id=data["id"],
            original_filename=data["original_filename"],
            media_type=data["media_type"],
            byte_size=int(data["byte_size"]),
            stored_at=stored_at,
            sha256=data["sha256"],
        )


def is_canonical(value: Any) -> bool:
    """Return True if a stored slot value carries the current schema tag."""
    return isinstance(value, dict) and value.get("schema") == ATTACHMENT_REF_SCHEMA


def describe_shape(value: Any) -> str:
    """Name the historical shape of a slot value (for errors and reports)."""
    if value is None:
        return "empty"
    if isinstance(value, str):
        return "path-string"
    if isinstance(value, dict):
        if "schema" in value:
            return f"unknown-schema:{value['schema']}"
        return "upload-object"
    return type(value).__name__


@dataclass
class AttachmentUpload:
    """One received file blob, as handed over by the transport layer.

    Attributes:
        stream: Readable binary stream positioned at the start of the content
        filename: Declared filename (display only)
        media_type: Declared media type
        declared_size: Size reported by the client, if any
    """

    stream: BinaryIO
    filename: str
    media_type: str
    declared_size: Optional[int] = None


@dataclass
class AttachmentDownload:
    """Egress bundle for a stored attachment."""

    stream: BinaryIO
    filename: str
    media_type: str
    byte_size: int
    disposition: str = "attachment"
