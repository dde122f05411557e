"""Unit tests for the S3 attachment store using moto

Covers put/get/delete/exists against a mocked bucket, the size and media
type checks that must run before anything reaches the bucket, and bucket
verification at startup.
"""

import hashlib
import io

import boto3
import pytest
from moto import mock_aws

from kycdesk.domain.attachments.errors import (
    AttachmentNotFound,
    EmptyAttachment,
    SizeLimitExceeded,
    StorageError,
    UnsupportedMediaType,
)
from kycdesk.infrastructure.storage.s3_storage_adapter import S3AttachmentStore

# Test constants
TEST_BUCKET = "test-kycdesk-attachments"
TEST_REGION = "us-east-1"
TEST_ACCESS_KEY = "test-access-key"
TEST_SECRET_KEY = "test-secret-key"
MAX_SIZE = 2048


@pytest.fixture
def s3_client():
    """Mock S3 environment with the attachment bucket created"""
    with mock_aws():
        client = boto3.client(
            "s3",
            region_name=TEST_REGION,
            aws_access_key_id=TEST_ACCESS_KEY,
            aws_secret_access_key=TEST_SECRET_KEY,
        )
        client.create_bucket(Bucket=TEST_BUCKET)
        yield client


@pytest.fixture
def store(s3_client):
    """S3AttachmentStore bound to the mocked bucket"""
    return S3AttachmentStore(
        endpoint_url=None,  # AWS S3 (moto mocks this)
        access_key=TEST_ACCESS_KEY,
        secret_key=TEST_SECRET_KEY,
        bucket_name=TEST_BUCKET,
        region=TEST_REGION,
        max_size_bytes=MAX_SIZE,
        chunk_size=256,
    )


def object_keys(s3_client):
    response = s3_client.list_objects_v2(Bucket=TEST_BUCKET)
    return [item["Key"] for item in response.get("Contents", [])]


class TestInitialize:

    @pytest.mark.asyncio
    async def test_existing_bucket(self, store):
        await store.initialize()

    @pytest.mark.asyncio
    async def test_missing_bucket_fails(self, s3_client):
        adapter = S3AttachmentStore(
            endpoint_url=None,
            access_key=TEST_ACCESS_KEY,
            secret_key=TEST_SECRET_KEY,
            bucket_name="no-such-bucket",
            region=TEST_REGION,
        )
        with pytest.raises(StorageError, match="does not exist"):
            await adapter.initialize()


class TestPut:

    @pytest.mark.asyncio
    async def test_put_stores_object_under_generated_key(self, store, s3_client):
        content = b"%PDF-1.4 s3 content"

        ref = await store.put(io.BytesIO(content), "application/pdf", "aadhar card.pdf")

        assert object_keys(s3_client) == [f"attachments/{ref.id}"]
        assert ref.sha256 == hashlib.sha256(content).hexdigest()
        assert ref.byte_size == len(content)

        head = s3_client.head_object(Bucket=TEST_BUCKET, Key=f"attachments/{ref.id}")
        assert head["ContentType"] == "application/pdf"
        assert head["Metadata"]["sha256"] == ref.sha256

    @pytest.mark.asyncio
    async def test_streaming_multiple_chunks(self, store):
        content = b"X" * (MAX_SIZE - 10)

        ref = await store.put(io.BytesIO(content), "image/png", "scan.png")

        assert ref.byte_size == len(content)
        assert ref.sha256 == hashlib.sha256(content).hexdigest()

    @pytest.mark.asyncio
    async def test_oversize_never_reaches_bucket(self, store, s3_client):
        with pytest.raises(SizeLimitExceeded):
            await store.put(io.BytesIO(b"X" * (MAX_SIZE + 1)), "application/pdf", "big.pdf")

        assert object_keys(s3_client) == []

    @pytest.mark.asyncio
    async def test_unsupported_media_type_never_reaches_bucket(self, store, s3_client):
        with pytest.raises(UnsupportedMediaType):
            await store.put(io.BytesIO(b"MZ"), "application/x-msdownload", "setup.exe")

        assert object_keys(s3_client) == []

    @pytest.mark.asyncio
    async def test_empty_rejected(self, store, s3_client):
        with pytest.raises(EmptyAttachment):
            await store.put(io.BytesIO(b""), "application/pdf", "empty.pdf")

        assert object_keys(s3_client) == []


class TestGetDeleteExists:

    @pytest.mark.asyncio
    async def test_get_returns_content(self, store):
        ref = await store.put(io.BytesIO(b"signature"), "image/jpeg", "sign.jpg")

        body = await store.get(ref.id)
        try:
            assert body.read() == b"signature"
        finally:
            body.close()

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(AttachmentNotFound):
            await store.get("a" * 32)

    @pytest.mark.asyncio
    async def test_exists_and_delete(self, store, s3_client):
        ref = await store.put(io.BytesIO(b"content"), "application/pdf", "a.pdf")
        assert await store.exists(ref.id) is True

        await store.delete(ref.id)

        assert await store.exists(ref.id) is False
        assert object_keys(s3_client) == []

    @pytest.mark.asyncio
    async def test_delete_missing_reports_not_found(self, store):
        with pytest.raises(AttachmentNotFound):
            await store.delete("b" * 32)

    @pytest.mark.asyncio
    async def test_malformed_id(self, store):
        assert await store.exists("attachments/../secret") is False
        with pytest.raises(AttachmentNotFound):
            await store.get("attachments/../secret")
