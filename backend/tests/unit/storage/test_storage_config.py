"""Unit tests for storage configuration and the store factory"""

import pytest

from kycdesk.config import Settings
from kycdesk.infrastructure.storage import (
    LocalAttachmentStore,
    S3AttachmentStore,
    StorageConfig,
    build_store,
    load_storage_config,
    validate_storage_config,
)


def make_config(**overrides) -> StorageConfig:
    values = dict(
        backend="s3",
        local_root="./var/attachments",
        endpoint_url="http://localhost:9000",
        access_key="minioadmin",
        secret_key="minioadmin",
        bucket_name="kycdesk-attachments",
    )
    values.update(overrides)
    return StorageConfig(**values)


class TestLoadStorageConfig:

    def test_from_settings(self):
        settings = Settings(
            STORAGE_BACKEND="S3",
            S3_ENDPOINT_URL="",
            S3_REGION="ap-south-1",
            MAX_UPLOAD_SIZE_BYTES=8 * 1024 * 1024,
        )

        config = load_storage_config(settings)

        assert config.backend == "s3"
        assert config.endpoint_url is None
        assert config.region == "ap-south-1"
        assert config.max_size_bytes == 8 * 1024 * 1024

    @pytest.mark.parametrize("limit", [1024, 11 * 1024 * 1024])
    def test_upload_limit_outside_5_to_10_mib_rejected(self, limit):
        with pytest.raises(ValueError):
            Settings(MAX_UPLOAD_SIZE_BYTES=limit)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            Settings(STORAGE_BACKEND="ftp")


class TestValidateStorageConfig:

    def test_valid_minio_config(self):
        validate_storage_config(make_config())

    def test_valid_local_config(self):
        validate_storage_config(make_config(backend="local", access_key="", secret_key=""))

    def test_local_requires_root(self):
        with pytest.raises(ValueError, match="LOCAL_STORAGE_ROOT"):
            validate_storage_config(make_config(backend="local", local_root=""))

    def test_missing_bucket(self):
        with pytest.raises(ValueError, match="bucket_name"):
            validate_storage_config(make_config(bucket_name=""))

    def test_endpoint_scheme_required(self):
        with pytest.raises(ValueError, match="Invalid endpoint_url"):
            validate_storage_config(make_config(endpoint_url="localhost:9000"))

    def test_aws_requires_region(self):
        with pytest.raises(ValueError, match="region"):
            validate_storage_config(make_config(endpoint_url=None, region=""))

    def test_non_positive_limits(self):
        with pytest.raises(ValueError):
            validate_storage_config(make_config(max_size_bytes=0))
        with pytest.raises(ValueError):
            validate_storage_config(make_config(chunk_size=0))


class TestBuildStore:

    def test_local_backend(self, tmp_path):
        store = build_store(make_config(backend="local", local_root=str(tmp_path), max_size_bytes=7000))

        assert isinstance(store, LocalAttachmentStore)
        assert store.backend_name == "local"
        assert store.max_size_bytes == 7000

    def test_s3_backend(self):
        store = build_store(make_config())

        assert isinstance(store, S3AttachmentStore)
        assert store.bucket_name == "kycdesk-attachments"
