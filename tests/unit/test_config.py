"""Tests for configuration loading."""

import pytest

from s3_file_manager.config import (
    DEFAULT_MULTIPART_THRESHOLD,
    MIB,
    TransferConfig,
)


class TestTransferConfig:
    def test_from_env_loads_values(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("MULTIPART_THRESHOLD_BYTES", str(20 * MIB))
        monkeypatch.setenv("MAX_UPLOAD_CONCURRENCY", "8")
        monkeypatch.setenv("STREAM_TIMEOUT_MS", "2500")
        monkeypatch.setenv("VERBOSE_LOGGING", "true")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
        monkeypatch.setenv("S3_FORCE_PATH_STYLE", "1")

        config = TransferConfig.from_env()
        assert config.bucket_name == "test-bucket"
        assert config.bucket_region == "us-east-1"
        assert config.max_attempts == 5
        assert config.multipart_threshold_bytes == 20 * MIB
        assert config.chunk_size_bytes == 20 * MIB
        assert config.max_upload_concurrency == 8
        assert config.stream_timeout_seconds == 2.5
        assert config.verbose_logging is True
        assert config.endpoint_url == "http://localhost:9000"
        assert config.force_path_style is True

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BUCKET_NAME", raising=False)
        monkeypatch.delenv("BUCKET_REGION", raising=False)

        config = TransferConfig.from_env()
        assert config.bucket_name == ""
        assert config.max_attempts == 3
        assert config.multipart_threshold_bytes == 10 * MIB
        assert config.max_upload_concurrency == 4
        assert config.folder_download_concurrency == 6
        assert config.buffer_ceiling_bytes == 200 * MIB
        assert config.stream_timeout_ms == 10_000
        assert config.retry_base_delay == 0.1
        assert config.retry_max_delay == 10.0
        assert config.verbose_logging is False

    @pytest.mark.parametrize("threshold", [MIB, 4 * MIB, 101 * MIB, 0, -1])
    def test_out_of_range_threshold_falls_back(self, threshold):
        config = TransferConfig(multipart_threshold_bytes=threshold)
        assert config.multipart_threshold_bytes == DEFAULT_MULTIPART_THRESHOLD

    @pytest.mark.parametrize("threshold", [5 * MIB, 100 * MIB])
    def test_threshold_bounds_are_inclusive(self, threshold):
        config = TransferConfig(multipart_threshold_bytes=threshold)
        assert config.multipart_threshold_bytes == threshold

    def test_non_positive_values_fall_back(self):
        config = TransferConfig(
            max_attempts=0,
            max_upload_concurrency=0,
            folder_download_concurrency=-2,
            max_batch_workers=0,
            stream_timeout_ms=0,
        )
        assert config.max_attempts == 3
        assert config.max_upload_concurrency == 4
        assert config.folder_download_concurrency == 6
        assert config.max_batch_workers == 16
        assert config.stream_timeout_ms == 10_000

    def test_frozen_dataclass(self):
        config = TransferConfig.from_env()
        with pytest.raises(AttributeError):
            config.bucket_name = "modified"
