"""Download engine: buffered and streamed retrieval, folder fan-out, presigned URLs."""

import json
import mimetypes
import posixpath
from pathlib import Path
from typing import Any, List, Optional, Union

from s3_file_manager.batch import BatchCoordinator
from s3_file_manager.context import TransferContext
from s3_file_manager.exceptions import NonRetryableError, TransferError
from s3_file_manager.keys import base_name, folder_prefix
from s3_file_manager.limiter import ConcurrencyLimiter
from s3_file_manager.listing import Lister
from s3_file_manager.payload import DEFAULT_CONTENT_TYPE
from s3_file_manager.results import BatchResult
from s3_file_manager.store import ObjectBody

TEXT_MIME_PREFIXES = ("text/", "application/xml")
TEXT_EXTENSIONS = ("txt", "csv", "xml", "md", "html")
TIMEOUT_ERRORS = ("ReadTimeoutError", "ConnectTimeoutError")


def _is_utf8(data: bytes) -> bool:
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def file_format(key: str, content_type: Optional[str], data: bytes) -> str:
    """Decide how downloaded bytes are returned: "json", "text" or "buffer"."""
    lowered = key.lower()
    if content_type and content_type != DEFAULT_CONTENT_TYPE:
        mime = content_type.split(";")[0].strip()
        if mime == "application/json" or mime.endswith("+json"):
            return "json"
        if mime.startswith(TEXT_MIME_PREFIXES):
            return "text"
        return "buffer"
    if not _is_utf8(data):
        return "buffer"
    if lowered.endswith("json"):
        return "json"
    if lowered.endswith(TEXT_EXTENSIONS):
        return "text"
    return "buffer"


class DownloadManager:
    def __init__(
        self,
        ctx: TransferContext,
        folder_limiter: Optional[ConcurrencyLimiter] = None,
        batch: Optional[BatchCoordinator] = None,
        lister: Optional[Lister] = None,
    ):
        self.ctx = ctx
        self.folder_limiter = folder_limiter or ConcurrencyLimiter(
            ctx.config.folder_download_concurrency
        )
        self.batch = batch or BatchCoordinator(ctx)
        self.lister = lister or Lister(ctx)

    def _fetch(self, key: str) -> ObjectBody:
        try:
            return self.ctx.store.get_object(key)
        except TransferError as e:
            if e.details.get("error_type") in TIMEOUT_ERRORS:
                self.ctx.logger.warning(
                    "Streaming %s timed out after %dms",
                    key,
                    self.ctx.config.stream_timeout_ms,
                )
            raise

    def _read_whole(self, key: str) -> ObjectBody:
        """One attempt: GET and read the body fully, always closing it."""
        body = self._fetch(key)
        try:
            data = body.read()
        finally:
            body.close()
        return ObjectBody(
            key=key,
            body=data,
            content_type=body.content_type,
            content_length=body.content_length,
        )

    def get_stream(self, key: str) -> ObjectBody:
        """Open a readable body without loading it into memory.

        The caller owns the returned body and must close it.
        """
        return self.ctx.span(
            "S3FileManager.get_stream",
            {"file_path": key},
            lambda: self.ctx.retry.execute(
                lambda: self._fetch(key), action=f"to stream {key}"
            ),
        )

    def download_file(self, key: str) -> Union[str, bytes, Any]:
        """Load an object into memory as text, parsed JSON or bytes."""

        def work():
            result = self.ctx.retry.execute(
                lambda: self._read_whole(key), action=f"to load file: {key}"
            )
            data: bytes = result.body
            kind = file_format(key, result.content_type, data)
            if kind == "json":
                return json.loads(data.decode("utf-8"))
            if kind == "text":
                return data.decode("utf-8")
            return data

        return self.ctx.span("S3FileManager.download_file", {"file_path": key}, work)

    def _destination_name(self, key: str, content_type: Optional[str]) -> str:
        name = base_name(key)
        if posixpath.splitext(name)[1]:
            return name
        extension = (
            mimetypes.guess_extension(content_type.split(";")[0].strip())
            if content_type
            else None
        )
        if extension:
            return name + extension
        self.ctx.logger.warning(
            "Unable to determine a file extension for file %s", key
        )
        return name

    def download_to_disk(
        self,
        key: str,
        out_dir: Union[str, Path],
        output_filename: Optional[str] = None,
    ) -> Path:
        """Write an object to ``out_dir`` and return the written path.

        Objects up to ``buffer_ceiling_bytes`` are read into memory first;
        larger ones are piped straight to disk.
        """

        def work() -> Path:
            metadata = self.ctx.retry.execute(
                lambda: self.ctx.store.head_object(key),
                action=f"to get metadata of file {key}",
            )
            if not metadata.content_type:
                self.ctx.logger.warning("Missing ContentType for %s", key)

            fs = self.ctx.filesystem
            destination = Path(out_dir) / (
                output_filename or self._destination_name(key, metadata.content_type)
            )
            fs.makedirs(destination.parent)

            length = metadata.content_length
            if length is not None and length <= self.ctx.config.buffer_ceiling_bytes:
                result = self.ctx.retry.execute(
                    lambda: self._read_whole(key), action=f"to download {key}"
                )
                fs.write_bytes(destination, result.body)
            else:
                body = self.get_stream(key)
                try:
                    fs.write_stream(destination, body.body)
                except Exception:
                    fs.remove(destination)
                    raise
                finally:
                    body.close()

            self.ctx.verbose("Successfully downloaded %s", key)
            return destination

        return self.ctx.span(
            "S3FileManager.download_to_disk",
            {"file_path": key, "out_dir": str(out_dir)},
            work,
        )

    def download_folder_to_disk(
        self, prefix: str, out_dir: Union[str, Path]
    ) -> BatchResult:
        """Download every object under ``prefix`` into ``out_dir/<last folder>/``.

        Nested folders below the prefix are recreated locally. One file's
        failure never stops the others.
        """

        def work() -> BatchResult:
            keys: List[str] = [
                key
                for key in self.lister.list_all(
                    folder_prefix(prefix),
                    span_name="S3FileManager.download_folder_to_disk > list_items",
                )
                if not key.endswith("/")
            ]
            if not keys:
                return BatchResult(message=f"No files found with prefix {prefix}")

            trimmed = prefix.rstrip("/")
            out_path = Path(out_dir)
            if trimmed:
                out_path = out_path / posixpath.basename(trimmed)

            root = out_path.resolve()

            def download_one(key: str) -> str:
                relative = key[len(trimmed) + 1:] if trimmed else key
                target_dir = out_path / posixpath.dirname(relative)
                if not (target_dir / base_name(key)).resolve().is_relative_to(root):
                    raise NonRetryableError(
                        f"Refusing to write {key} outside {out_path}",
                        details={"key": key, "out_dir": str(out_path)},
                    )
                self.folder_limiter.schedule(
                    self.download_to_disk,
                    key,
                    target_dir,
                    output_filename=base_name(key),
                )
                return key

            return self.batch.run_all(
                keys,
                download_one,
                identify=str,
                label=f"Download of files with prefix {prefix}",
            )

        return self.ctx.span(
            "S3FileManager.download_folder_to_disk", {"prefix": prefix}, work
        )

    def get_temporary_download_url(self, key: str, expires_in: int = 60 * 60) -> str:
        return self.ctx.span(
            "S3FileManager.get_temporary_download_url",
            {"file_path": key, "expires_in": expires_in},
            lambda: self.ctx.retry.execute(
                lambda: self.ctx.store.presigned_url(key, expires_in),
                action=f"to generate temporary download link for {key}",
            ),
        )
