"""Upload engine: single-request puts and chunked multipart uploads."""

import itertools
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from s3_file_manager.batch import BatchCoordinator
from s3_file_manager.chunking import Chunk, ChunkSource, read_all, use_multipart
from s3_file_manager.context import TransferContext
from s3_file_manager.exceptions import PreparationError, SessionAbortError
from s3_file_manager.keys import join_key
from s3_file_manager.limiter import ConcurrencyLimiter
from s3_file_manager.logger import log_with_context
from s3_file_manager.payload import (
    BytesContent,
    Payload,
    ReaderContent,
    classify,
    resolve_content_type,
)
from s3_file_manager.results import BatchResult


def _raise_first_failure(done: Set[Future]) -> None:
    for future in done:
        error = future.exception()
        if error is not None:
            raise error


class UploadManager:
    """Routes uploads to a single put or a multipart session based on size.

    All store calls that move bytes go through one shared limiter, so a batch
    of many multipart uploads still keeps at most ``max_upload_concurrency``
    requests in flight.
    """

    def __init__(
        self,
        ctx: TransferContext,
        limiter: Optional[ConcurrencyLimiter] = None,
        batch: Optional[BatchCoordinator] = None,
    ):
        self.ctx = ctx
        self.limiter = limiter or ConcurrencyLimiter(
            ctx.config.max_upload_concurrency
        )
        self.batch = batch or BatchCoordinator(ctx)

    # ------------------------------------------------------------------
    # Single payloads
    # ------------------------------------------------------------------

    def upload_file(self, payload: Payload, prefix: str = "") -> str:
        """Upload one payload and return its destination key.

        Raises ``ExhaustedRetriesError`` when the store keeps failing and
        ``PreparationError`` when the content cannot be read.
        """
        key = join_key(prefix, payload.name)

        def work() -> str:
            _, size = classify(payload)
            content_type = resolve_content_type(payload.name, payload.content_type)
            multipart = use_multipart(size, self.ctx.config.multipart_threshold_bytes)
            self.ctx.verbose(
                "Uploading %s (%s bytes) using %s upload",
                payload.name,
                size if size is not None else "unknown",
                "multipart" if multipart else "simple",
            )
            if multipart:
                return self._multipart_upload(payload, key, content_type, size)
            return self._simple_upload(payload, key, content_type)

        return self.ctx.span("S3FileManager.upload_file", {"filename": key}, work)

    def _simple_upload(self, payload: Payload, key: str, content_type: str) -> str:
        if isinstance(payload.content, BytesContent):
            body = payload.content.data
        else:
            # Incremental content is buffered so every retry resends the same body.
            try:
                body = read_all(payload.content)
            except Exception as e:
                raise PreparationError(
                    f"Failed to read content of {payload.name}: {e}",
                    details={"filename": payload.name},
                ) from e
        self._put(key, body, content_type, payload.name)
        return key

    def _put(self, key: str, body: bytes, content_type: str, name: str) -> None:
        def send() -> str:
            return self.limiter.schedule(
                self.ctx.store.put_object, key, body, content_type
            )

        self.ctx.span(
            "S3FileManager.upload_file > simple_upload",
            {"filename": key},
            lambda: self.ctx.retry.execute(send, action=f"to upload {name}"),
        )
        self.ctx.verbose("Successfully uploaded %s", name)

    # ------------------------------------------------------------------
    # Multipart
    # ------------------------------------------------------------------

    def _multipart_upload(
        self,
        payload: Payload,
        key: str,
        content_type: str,
        size: Optional[int],
    ) -> str:
        config = self.ctx.config
        source = ChunkSource(
            payload.content,
            size,
            chunk_size=config.chunk_size_bytes,
            buffer_ceiling=config.buffer_ceiling_bytes,
        )
        chunks = iter(source)
        # Pulling the first chunk surfaces preparation failures before a
        # session is opened.
        first = next(chunks, None)
        if first is None:
            self.ctx.verbose("%s is empty; using a single empty upload", payload.name)
            self._put(key, b"", content_type, payload.name)
            return key
        self.ctx.verbose(
            "Successfully prepared %s for multipart upload",
            "stream" if source.streamed else "buffer",
        )

        def work() -> str:
            upload_id = self.ctx.retry.execute(
                lambda: self.ctx.store.create_multipart_upload(key, content_type),
                action=f"to initiate multipart upload of {key}",
            )
            try:
                parts = self._upload_parts(
                    key, upload_id, itertools.chain([first], chunks)
                )
                self.ctx.retry.execute(
                    lambda: self.ctx.store.complete_multipart_upload(
                        key, upload_id, parts
                    ),
                    action=f"to complete multipart upload of {key}",
                )
            except Exception:
                self._abort(key, upload_id)
                raise
            self.ctx.verbose(
                "File %s successfully uploaded in %d part(s)", key, len(parts)
            )
            return key

        return self.ctx.span(
            "S3FileManager.upload_file > multipart_upload", {"filename": key}, work
        )

    def _upload_parts(
        self, key: str, upload_id: str, chunks: Iterator[Chunk]
    ) -> List[Dict[str, Any]]:
        """Upload chunks concurrently, at most ``window`` held at once.

        Chunks are submitted in source order; completion order is arbitrary.
        The first failure stops further submissions and is re-raised.
        """
        window = self.ctx.config.max_upload_concurrency
        submitted: List[Tuple[int, Future]] = []
        pending: Set[Future] = set()

        with ThreadPoolExecutor(max_workers=window, thread_name_prefix="part") as pool:
            try:
                for chunk in chunks:
                    while len(pending) >= window:
                        done, pending = wait(pending, return_when=FIRST_COMPLETED)
                        _raise_first_failure(done)
                    future = pool.submit(self._upload_part, key, upload_id, chunk)
                    submitted.append((chunk.part_number, future))
                    pending.add(future)
                done, pending = wait(pending)
                _raise_first_failure(done)
            except BaseException:
                for future in pending:
                    future.cancel()
                raise

        parts = [
            {"PartNumber": part_number, "ETag": future.result()}
            for part_number, future in submitted
        ]
        return sorted(parts, key=lambda part: part["PartNumber"])

    def _upload_part(self, key: str, upload_id: str, chunk: Chunk) -> str:
        def send() -> str:
            return self.limiter.schedule(
                self.ctx.store.upload_part,
                key,
                upload_id,
                chunk.part_number,
                chunk.data,
            )

        return self.ctx.span(
            "S3FileManager.upload_file > multipart_upload > upload_part",
            {"filename": key, "upload_id": upload_id, "part_number": chunk.part_number},
            lambda: self.ctx.retry.execute(
                send, action=f"to upload part {chunk.part_number} of {key}"
            ),
        )

    def _abort(self, key: str, upload_id: str) -> None:
        """Best-effort session cleanup; never raises over the original error."""
        self.ctx.logger.warning("Aborting multipart upload %s for %s", upload_id, key)
        try:
            self.ctx.retry.execute(
                lambda: self.ctx.store.abort_multipart_upload(key, upload_id),
                action=f"to abort multipart upload of {key}",
                on_not_found=lambda _: None,
            )
        except Exception as e:
            error = SessionAbortError(
                f"Failed to abort multipart upload {upload_id} for {key}: {e}",
                details={"key": key, "upload_id": upload_id},
            )
            log_with_context(
                self.ctx.logger, logging.ERROR, str(error), **error.details
            )

    # ------------------------------------------------------------------
    # Batches and disk
    # ------------------------------------------------------------------

    def upload_multiple_files(
        self, payloads: Iterable[Payload], prefix: str = ""
    ) -> BatchResult:
        payloads = list(payloads)
        return self.ctx.span(
            "S3FileManager.upload_multiple_files",
            {"count": len(payloads), "prefix": prefix},
            lambda: self.batch.run_all(
                payloads,
                lambda payload: self.upload_file(payload, prefix),
                identify=lambda payload: payload.name,
                label="File batch upload",
            ),
        )

    def upload_from_disk(
        self,
        path: Union[str, Path],
        prefix: str = "",
        content_type: Optional[str] = None,
    ) -> str:
        """Upload a local file; large files are streamed from disk."""
        fs = self.ctx.filesystem
        name = Path(path).name
        data = None
        try:
            size = fs.size(path)
            if size <= self.ctx.config.multipart_threshold_bytes:
                data = fs.read_bytes(path)
            else:
                handle = fs.open_read(path)
        except OSError as e:
            raise PreparationError(
                f"Failed to read {path}: {e}", details={"path": str(path)}
            ) from e

        if data is not None:
            return self.upload_file(
                Payload(name, BytesContent(data), content_type, size), prefix
            )
        with handle:
            return self.upload_file(
                Payload(name, ReaderContent(handle), content_type, size), prefix
            )

    def upload_multiple_from_disk(
        self, paths: Iterable[Union[str, Path]], prefix: str = ""
    ) -> BatchResult:
        paths = list(paths)
        return self.ctx.span(
            "S3FileManager.upload_multiple_from_disk",
            {"count": len(paths), "prefix": prefix},
            lambda: self.batch.run_all(
                paths,
                lambda path: self.upload_from_disk(path, prefix),
                identify=str,
                label="File batch upload",
            ),
        )
