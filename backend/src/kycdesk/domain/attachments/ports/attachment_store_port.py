"""Attachment Store Port - Domain interface for attachment byte storage.

Adapters (local filesystem, S3/MinIO) implement this contract. The store owns
the bytes; callers own the AttachmentRefs and keep them consistent with
submission slots.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

from ..attachment_ref import AttachmentRef
from ..validation import DEFAULT_MAX_FILE_SIZE


class AttachmentStorePort(ABC):
    """Port interface for attachment storage.

    Key Design Principles:
    - Attachment ids are generated by the store, independent of filenames
    - Media type is checked against the allow-list before any byte is written
    - Size is enforced while streaming, so oversize uploads never buffer fully
    - Rejected writes leave nothing behind in the backing store

    Example Usage:
        store = LocalAttachmentStore(root="/var/kycdesk/attachments")
        await store.initialize()

        with open('aadhar.pdf', 'rb') as f:
            ref = await store.put(f, 'application/pdf', 'aadhar.pdf')

        stream = await store.get(ref.id)
    """

    #: Backend name used in logs and the health endpoint
    backend_name: str = "abstract"

    #: Per-attachment size limit enforced by put()
    max_size_bytes: int = DEFAULT_MAX_FILE_SIZE

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backing store (create directories, verify bucket).

        Called once at process start, before the first write.

        Raises:
            StorageError: If the backing store is unusable
        """
        pass

    @abstractmethod
    async def put(
        self,
        stream: BinaryIO,
        media_type: str,
        filename: str,
        declared_size: Optional[int] = None,
    ) -> AttachmentRef:
        """Store attachment content and return its reference.

        Args:
            stream: Readable binary stream (read in chunks)
            media_type: Declared media type (checked against the allow-list)
            filename: Declared filename, kept for display only
            declared_size: Client-declared size; rejected early if over the limit

        Returns:
            AttachmentRef: Reference carrying the generated id

        Raises:
            UnsupportedMediaType: Media type not allowed (nothing written)
            SizeLimitExceeded: Content over the limit (partial write removed)
            EmptyAttachment: Zero-byte content
            StorageError: Backing store I/O failure
        """
        pass

    @abstractmethod
    async def get(self, attachment_id: str) -> BinaryIO:
        """Open stored content for streaming.

        Returns:
            BinaryIO: Readable stream (caller must close)

        Raises:
            AttachmentNotFound: If the id is unknown
            StorageError: If retrieval fails
        """
        pass

    @abstractmethod
    async def delete(self, attachment_id: str) -> None:
        """Delete stored content.

        Raises:
            AttachmentNotFound: If the id is unknown
            StorageError: If deletion fails

        Note:
            Cleanup callers catch AttachmentNotFound; it is never fatal there.
        """
        pass

    @abstractmethod
    async def exists(self, attachment_id: str) -> bool:
        """Check if content exists for an id."""
        pass
