"""Unit tests for the local filesystem attachment store"""

import hashlib
import io

import pytest

from kycdesk.domain.attachments.errors import (
    AttachmentNotFound,
    EmptyAttachment,
    SizeLimitExceeded,
    StorageError,
    UnsupportedMediaType,
)
from kycdesk.infrastructure.storage.local_storage_adapter import LocalAttachmentStore

MAX_SIZE = 1024


@pytest.fixture
def store(tmp_path):
    adapter = LocalAttachmentStore(root=str(tmp_path / "attachments"), max_size_bytes=MAX_SIZE, chunk_size=100)
    adapter.incoming.mkdir(parents=True, exist_ok=True)
    return adapter


def files_under(store):
    return [p for p in store.root.rglob("*") if p.is_file()]


class TestInitialize:

    @pytest.mark.asyncio
    async def test_creates_root_and_incoming(self, tmp_path):
        adapter = LocalAttachmentStore(root=str(tmp_path / "new" / "root"))
        await adapter.initialize()

        assert adapter.incoming.is_dir()

    @pytest.mark.asyncio
    async def test_root_that_is_a_file_fails(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(StorageError):
            await LocalAttachmentStore(root=str(blocker)).initialize()


class TestPut:

    @pytest.mark.asyncio
    async def test_put_returns_ref_with_generated_id(self, store):
        content = b"%PDF-1.4 local store content"

        ref = await store.put(io.BytesIO(content), "application/pdf", "../aadhar.pdf")

        assert len(ref.id) == 32
        assert "aadhar" not in ref.id
        assert ref.original_filename == "../aadhar.pdf"
        assert ref.byte_size == len(content)
        assert ref.sha256 == hashlib.sha256(content).hexdigest()
        assert ref.media_type == "application/pdf"
        assert (store.root / ref.id[:2] / ref.id).read_bytes() == content

    @pytest.mark.asyncio
    async def test_same_content_gets_distinct_ids(self, store):
        first = await store.put(io.BytesIO(b"same"), "image/png", "a.png")
        second = await store.put(io.BytesIO(b"same"), "image/png", "a.png")

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_media_type_alias_normalized(self, store):
        ref = await store.put(io.BytesIO(b"jpeg bytes"), "image/jpg", "photo.jpg")
        assert ref.media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_unsupported_media_type_writes_nothing(self, store):
        with pytest.raises(UnsupportedMediaType):
            await store.put(io.BytesIO(b"text"), "text/plain", "notes.txt")

        assert files_under(store) == []

    @pytest.mark.asyncio
    async def test_declared_size_over_limit_rejected_early(self, store):
        stream = io.BytesIO(b"x" * 10)

        with pytest.raises(SizeLimitExceeded):
            await store.put(stream, "application/pdf", "big.pdf", declared_size=MAX_SIZE + 1)

        assert stream.tell() == 0
        assert files_under(store) == []

    @pytest.mark.asyncio
    async def test_actual_size_over_limit_removes_partial_write(self, store):
        with pytest.raises(SizeLimitExceeded):
            await store.put(io.BytesIO(b"x" * (MAX_SIZE + 1)), "application/pdf", "big.pdf")

        assert files_under(store) == []

    @pytest.mark.asyncio
    async def test_content_at_limit_accepted(self, store):
        ref = await store.put(io.BytesIO(b"x" * MAX_SIZE), "application/pdf", "edge.pdf")
        assert ref.byte_size == MAX_SIZE

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, store):
        with pytest.raises(EmptyAttachment):
            await store.put(io.BytesIO(b""), "image/png", "empty.png")

        assert files_under(store) == []


class TestGetDeleteExists:

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        ref = await store.put(io.BytesIO(b"signature bytes"), "image/png", "sign.png")

        stream = await store.get(ref.id)
        try:
            assert stream.read() == b"signature bytes"
        finally:
            stream.close()

        assert await store.exists(ref.id) is True
        await store.delete(ref.id)
        assert await store.exists(ref.id) is False

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, store):
        with pytest.raises(AttachmentNotFound):
            await store.get("f" * 32)

    @pytest.mark.asyncio
    async def test_delete_unknown_id(self, store):
        with pytest.raises(AttachmentNotFound):
            await store.delete("f" * 32)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", ["../../etc/passwd", "ABC", "", "g" * 32])
    async def test_malformed_ids_never_touch_the_filesystem(self, store, bad_id):
        with pytest.raises(AttachmentNotFound):
            await store.get(bad_id)
        assert await store.exists(bad_id) is False
