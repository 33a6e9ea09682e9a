"""Configuration loaded from environment variables or passed explicitly."""

import os
from dataclasses import dataclass

MIB = 1024 * 1024

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MULTIPART_THRESHOLD = 10 * MIB
MIN_MULTIPART_THRESHOLD = 5 * MIB
MAX_MULTIPART_THRESHOLD = 100 * MIB
DEFAULT_UPLOAD_CONCURRENCY = 4
DEFAULT_FOLDER_DOWNLOAD_CONCURRENCY = 6
DEFAULT_BATCH_WORKERS = 16
DEFAULT_BUFFER_CEILING = 200 * MIB
DEFAULT_STREAM_TIMEOUT_MS = 10_000


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class TransferConfig:
    """Settings shared by every transfer component."""

    # Bucket and endpoint
    bucket_name: str = ""
    bucket_region: str = ""
    endpoint_url: str = ""
    force_path_style: bool = False

    # Retry settings
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_base_delay: float = 0.1
    retry_max_delay: float = 10.0

    # Transfer settings
    multipart_threshold_bytes: int = DEFAULT_MULTIPART_THRESHOLD
    max_upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY
    folder_download_concurrency: int = DEFAULT_FOLDER_DOWNLOAD_CONCURRENCY
    max_batch_workers: int = DEFAULT_BATCH_WORKERS
    buffer_ceiling_bytes: int = DEFAULT_BUFFER_CEILING
    stream_timeout_ms: int = DEFAULT_STREAM_TIMEOUT_MS

    # Logging
    verbose_logging: bool = False

    def __post_init__(self):
        # Out-of-range values fall back to defaults instead of failing.
        if not (
            MIN_MULTIPART_THRESHOLD
            <= self.multipart_threshold_bytes
            <= MAX_MULTIPART_THRESHOLD
        ):
            object.__setattr__(
                self, "multipart_threshold_bytes", DEFAULT_MULTIPART_THRESHOLD
            )
        if self.max_attempts < 1:
            object.__setattr__(self, "max_attempts", DEFAULT_MAX_ATTEMPTS)
        if self.max_upload_concurrency < 1:
            object.__setattr__(
                self, "max_upload_concurrency", DEFAULT_UPLOAD_CONCURRENCY
            )
        if self.folder_download_concurrency < 1:
            object.__setattr__(
                self,
                "folder_download_concurrency",
                DEFAULT_FOLDER_DOWNLOAD_CONCURRENCY,
            )
        if self.max_batch_workers < 1:
            object.__setattr__(self, "max_batch_workers", DEFAULT_BATCH_WORKERS)
        if self.stream_timeout_ms <= 0:
            object.__setattr__(self, "stream_timeout_ms", DEFAULT_STREAM_TIMEOUT_MS)

    @property
    def chunk_size_bytes(self) -> int:
        """Size of every multipart chunk except the last."""
        return self.multipart_threshold_bytes

    @property
    def stream_timeout_seconds(self) -> float:
        return self.stream_timeout_ms / 1000

    @classmethod
    def from_env(cls) -> "TransferConfig":
        """Load configuration from environment variables."""
        return cls(
            bucket_name=os.environ.get("BUCKET_NAME", ""),
            bucket_region=os.environ.get("BUCKET_REGION", ""),
            endpoint_url=os.environ.get("S3_ENDPOINT_URL", ""),
            force_path_style=_env_bool("S3_FORCE_PATH_STYLE"),
            max_attempts=int(
                os.environ.get("MAX_RETRY_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))
            ),
            retry_base_delay=float(os.environ.get("RETRY_BASE_DELAY", "0.1")),
            retry_max_delay=float(os.environ.get("RETRY_MAX_DELAY", "10.0")),
            multipart_threshold_bytes=int(
                os.environ.get(
                    "MULTIPART_THRESHOLD_BYTES", str(DEFAULT_MULTIPART_THRESHOLD)
                )
            ),
            max_upload_concurrency=int(
                os.environ.get(
                    "MAX_UPLOAD_CONCURRENCY", str(DEFAULT_UPLOAD_CONCURRENCY)
                )
            ),
            folder_download_concurrency=int(
                os.environ.get(
                    "FOLDER_DOWNLOAD_CONCURRENCY",
                    str(DEFAULT_FOLDER_DOWNLOAD_CONCURRENCY),
                )
            ),
            max_batch_workers=int(
                os.environ.get("MAX_BATCH_WORKERS", str(DEFAULT_BATCH_WORKERS))
            ),
            buffer_ceiling_bytes=int(
                os.environ.get("BUFFER_CEILING_BYTES", str(DEFAULT_BUFFER_CEILING))
            ),
            stream_timeout_ms=int(
                os.environ.get("STREAM_TIMEOUT_MS", str(DEFAULT_STREAM_TIMEOUT_MS))
            ),
            verbose_logging=_env_bool("VERBOSE_LOGGING"),
        )
