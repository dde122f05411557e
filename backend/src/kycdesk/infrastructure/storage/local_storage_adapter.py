"""Local Filesystem Adapter - AttachmentStorePort on a local directory.

Layout: {root}/{id[:2]}/{id}. Uploads are streamed into {root}/.incoming and
moved into place only after every check passed, so a rejected upload never
leaves a file under an attachment id.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import BinaryIO, Optional

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

INCOMING_DIR = ".incoming"


class LocalAttachmentStore(AttachmentStorePort):
    """Attachment store backed by a local directory.

    Blocking file I/O runs in the default executor so request handlers stay
    responsive.

    Example:
        store = LocalAttachmentStore(root="./var/attachments")
        await store.initialize()
        ref = await store.put(upload.file, "application/pdf", "aadhar.pdf")
    """

    backend_name = "local"

    def __init__(
        self,
        root: str,
        max_size_bytes: int = 5 * 1024 * 1024,
        chunk_size: int = 64 * 1024,
    ):
        self.root = Path(root).resolve()
        self.incoming = self.root / INCOMING_DIR
        self.max_size_bytes = max_size_bytes
        self.chunk_size = chunk_size

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _path_for(self, attachment_id: str) -> Path:
        check_attachment_id(attachment_id)
        return self.root / attachment_id[:2] / attachment_id

    async def initialize(self) -> None:
        """Create the root and incoming directories and verify they are writable."""
        def _init():
            try:
                self.incoming.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot create attachment root {self.root}: {e}")
            if not os.access(self.incoming, os.W_OK):
                raise StorageError(f"Attachment root is not writable: {self.root}")

        await self._run(_init)
        logger.info(f"Initialized local attachment store: root={self.root}")

    async def put(
        self,
        stream: BinaryIO,
        media_type: str,
        filename: str,
        declared_size: Optional[int] = None,
    ) -> AttachmentRef:
        """Store an attachment on disk.

        Media type and declared size are checked before the temp file is
        created; actual size is checked on every chunk.
        """
        media_type = precheck_upload(media_type, declared_size, self.max_size_bytes)
        attachment_id = new_attachment_id()
        final_path = self._path_for(attachment_id)
        temp_path = self.incoming / f"{attachment_id}.part"

        def _write():
            try:
                with open(temp_path, "wb") as sink:
                    size_bytes, sha256 = copy_limited(
                        stream, sink, self.max_size_bytes, self.chunk_size
                    )
                final_path.parent.mkdir(parents=True, exist_ok=True)
                os.replace(temp_path, final_path)
                return size_bytes, sha256
            except BaseException:
                temp_path.unlink(missing_ok=True)
                raise

        try:
            size_bytes, sha256 = await self._run(_write)
        except StorageError:
            raise
        except OSError as e:
            logger.error(f"Local attachment write failed: id={attachment_id}, error={e}")
            raise StorageError(f"Failed to store attachment: {e}")

        logger.info(
            f"Stored attachment: id={attachment_id}, size={size_bytes}, "
            f"media_type={media_type}"
        )
        return build_ref(attachment_id, filename, media_type, size_bytes, sha256)

    async def get(self, attachment_id: str) -> BinaryIO:
        path = self._path_for(attachment_id)
        try:
            return await self._run(open, path, "rb")
        except FileNotFoundError:
            logger.warning(f"Attachment not found: id={attachment_id}")
            raise AttachmentNotFound(attachment_id)
        except OSError as e:
            raise StorageError(f"Failed to open attachment {attachment_id}: {e}")

    async def delete(self, attachment_id: str) -> None:
        path = self._path_for(attachment_id)
        try:
            await self._run(path.unlink)
        except FileNotFoundError:
            raise AttachmentNotFound(attachment_id)
        except OSError as e:
            raise StorageError(f"Failed to delete attachment {attachment_id}: {e}")
        logger.info(f"Deleted attachment: id={attachment_id}")

    async def exists(self, attachment_id: str) -> bool:
        try:
            path = self._path_for(attachment_id)
        except AttachmentNotFound:
            return False
        return await self._run(path.is_file)
