"""Public entry point wiring config, store, logging and tracing together."""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from s3_file_manager.batch import BatchCoordinator
from s3_file_manager.config import TransferConfig
from s3_file_manager.context import TransferContext, span_options
from s3_file_manager.downloads import DownloadManager
from s3_file_manager.file_service import FileService
from s3_file_manager.filesystem import LocalFilesystem
from s3_file_manager.limiter import ConcurrencyLimiter
from s3_file_manager.listing import CompareFn, FilterFn, Lister
from s3_file_manager.logger import get_logger, is_valid_logger
from s3_file_manager.payload import Payload
from s3_file_manager.results import (
    BatchResult,
    CopyResult,
    DeleteResult,
    ExistenceResult,
    MoveResult,
    RenameResult,
)
from s3_file_manager.retry import RetryPolicy
from s3_file_manager.store import (
    ObjectBody,
    ObjectStore,
    S3ObjectStore,
    create_s3_client,
)
from s3_file_manager.tracing import WithSpan, no_span
from s3_file_manager.uploads import UploadManager


class S3FileManager:
    """High-level file operations against one bucket.

    Every collaborator can be injected: ``store`` replaces the boto3 adapter
    entirely, ``client`` replaces only the boto3 client. Without either, a
    client is built from ``config``.
    """

    def __init__(
        self,
        config: Optional[TransferConfig] = None,
        client=None,
        store: Optional[ObjectStore] = None,
        logger=None,
        with_span: Optional[WithSpan] = None,
        filesystem: Optional[LocalFilesystem] = None,
    ):
        config = config or TransferConfig.from_env()
        if store is None:
            if not config.bucket_name:
                raise ValueError("bucket_name is required when no store is given")
            client = client or create_s3_client(config)
            store = S3ObjectStore(client, config.bucket_name)

        active_logger = logger if is_valid_logger(logger) else get_logger(
            "s3_file_manager"
        )
        self.config = config
        self.ctx = TransferContext(
            config=config,
            store=store,
            logger=active_logger,
            with_span=with_span or no_span,
            retry=RetryPolicy(
                max_attempts=config.max_attempts,
                logger=active_logger,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
            ),
            filesystem=filesystem or LocalFilesystem(),
        )

        batch = BatchCoordinator(self.ctx)
        lister = Lister(self.ctx)
        self.uploads = UploadManager(
            self.ctx,
            limiter=ConcurrencyLimiter(config.max_upload_concurrency),
            batch=batch,
        )
        self.downloads = DownloadManager(
            self.ctx,
            folder_limiter=ConcurrencyLimiter(config.folder_download_concurrency),
            batch=batch,
            lister=lister,
        )
        self.files = FileService(self.ctx, lister=lister)

    @property
    def bucket(self) -> str:
        return self.ctx.bucket

    # Every public operation accepts ``span_name`` and ``span_attributes``
    # to relabel its outermost span.

    # Listing and existence

    def list_files(
        self,
        prefix: str = "",
        filter_fn: Optional[FilterFn] = None,
        compare_fn: Optional[CompareFn] = None,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        with span_options(span_name, span_attributes):
            return self.files.list_files(prefix, filter_fn, compare_fn)

    def list_folders(
        self,
        prefix: str = "",
        filter_fn: Optional[FilterFn] = None,
        compare_fn: Optional[CompareFn] = None,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        with span_options(span_name, span_attributes):
            return self.files.list_folders(prefix, filter_fn, compare_fn)

    def confirm_files_exist(
        self,
        filenames: Sequence[str],
        prefix: str = "",
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> ExistenceResult:
        with span_options(span_name, span_attributes):
            return self.files.confirm_files_exist(filenames, prefix)

    # Downloads

    def download_file(
        self,
        file_path: str,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> Union[str, bytes, Any]:
        with span_options(span_name, span_attributes):
            return self.downloads.download_file(file_path)

    def get_stream(
        self,
        file_path: str,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> ObjectBody:
        with span_options(span_name, span_attributes):
            return self.downloads.get_stream(file_path)

    def download_to_disk(
        self,
        file_path: str,
        out_dir: Union[str, Path],
        output_filename: Optional[str] = None,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> Path:
        with span_options(span_name, span_attributes):
            return self.downloads.download_to_disk(file_path, out_dir, output_filename)

    def download_folder_to_disk(
        self,
        prefix: str,
        out_dir: Union[str, Path],
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        with span_options(span_name, span_attributes):
            return self.downloads.download_folder_to_disk(prefix, out_dir)

    def get_temporary_download_url(
        self,
        file_path: str,
        expires_in: int = 60 * 60,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> str:
        with span_options(span_name, span_attributes):
            return self.downloads.get_temporary_download_url(file_path, expires_in)

    # Uploads

    def upload_file(
        self,
        payload: Payload,
        prefix: str = "",
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> str:
        with span_options(span_name, span_attributes):
            return self.uploads.upload_file(payload, prefix)

    def upload_multiple_files(
        self,
        payloads: Iterable[Payload],
        prefix: str = "",
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        with span_options(span_name, span_attributes):
            return self.uploads.upload_multiple_files(payloads, prefix)

    def upload_from_disk(
        self,
        path: Union[str, Path],
        prefix: str = "",
        content_type: Optional[str] = None,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> str:
        with span_options(span_name, span_attributes):
            return self.uploads.upload_from_disk(path, prefix, content_type)

    def upload_multiple_from_disk(
        self,
        paths: Iterable[Union[str, Path]],
        prefix: str = "",
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        with span_options(span_name, span_attributes):
            return self.uploads.upload_multiple_from_disk(paths, prefix)

    # Copy, move, delete

    def copy_file(
        self,
        source: str,
        destination_folder: str,
        new_filename: Optional[str] = None,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> CopyResult:
        with span_options(span_name, span_attributes):
            return self.files.copy_file(source, destination_folder, new_filename)

    def move_file(
        self,
        source: str,
        destination_folder: str,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> MoveResult:
        with span_options(span_name, span_attributes):
            return self.files.move_file(source, destination_folder)

    def rename_file(
        self,
        file_path: str,
        new_name: str,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> RenameResult:
        with span_options(span_name, span_attributes):
            return self.files.rename_file(file_path, new_name)

    def delete_file(
        self,
        file_path: str,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> DeleteResult:
        with span_options(span_name, span_attributes):
            return self.files.delete_file(file_path)

    def delete_folder(
        self,
        prefix: str,
        *,
        span_name: Optional[str] = None,
        span_attributes: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        with span_options(span_name, span_attributes):
            return self.files.delete_folder(prefix)
