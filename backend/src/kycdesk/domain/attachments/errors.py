"""Attachment store error taxonomy.

Every error carries a stable machine-readable ``code`` and the HTTP status
the API layer reports for it.
"""


class StorageError(Exception):
    """Base exception for attachment store operations (I/O failures)."""

    code = "STORAGE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedMediaType(StorageError):
    """Declared media type is not on the allow-list; nothing was written."""

    code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = 415

    def __init__(self, media_type: str, allowed: frozenset):
        super().__init__(
            f"Unsupported media type: {media_type!r}. "
            f"Allowed: {', '.join(sorted(allowed))}"
        )
        self.media_type = media_type


class SizeLimitExceeded(StorageError):
    """Content grew past the configured limit while being written."""

    code = "SIZE_LIMIT_EXCEEDED"
    status_code = 413

    def __init__(self, max_size: int):
        super().__init__(f"Attachment exceeds maximum size of {max_size} bytes")
        self.max_size = max_size


class EmptyAttachment(StorageError):
    code = "EMPTY_ATTACHMENT"
    status_code = 400

    def __init__(self):
        super().__init__("Attachment is empty (0 bytes)")


class AttachmentNotFound(StorageError):
    code = "ATTACHMENT_NOT_FOUND"
    status_code = 404

    def __init__(self, attachment_id: str):
        super().__init__(f"Attachment not found: {attachment_id}")
        self.attachment_id = attachment_id


class LegacyAttachmentRef(StorageError):
    """A slot still holds a pre-migration file reference.

    Raised instead of interpreting old shapes at read time; run the
    attachment migration to rewrite the slot.
    """

    code = "LEGACY_ATTACHMENT_REF"
    status_code = 409

    def __init__(self, shape: str):
        super().__init__(
            f"Attachment slot holds a legacy {shape} reference; "
            "run the attachment migration before reading it"
        )
        self.shape = shape
