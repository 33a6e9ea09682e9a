"""Key-level operations: listing, existence checks, copy, move, rename, delete."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from s3_file_manager.batch import summarize
from s3_file_manager.context import TransferContext
from s3_file_manager.exceptions import TransferError
from s3_file_manager.keys import base_name, folder_prefix, join_key, parent_folder
from s3_file_manager.listing import CompareFn, FilterFn, Lister
from s3_file_manager.logger import log_with_context
from s3_file_manager.results import (
    BatchResult,
    CopyResult,
    DeleteResult,
    ExistenceResult,
    FailedItem,
    MoveResult,
    RenameResult,
)
from s3_file_manager.store import MAX_DELETE_BATCH


class FileService:
    def __init__(self, ctx: TransferContext, lister: Optional[Lister] = None):
        self.ctx = ctx
        self.lister = lister or Lister(ctx)

    def list_files(
        self,
        prefix: str = "",
        filter_fn: Optional[FilterFn] = None,
        compare_fn: Optional[CompareFn] = None,
    ) -> List[str]:
        return self.lister.list_all(
            prefix,
            filter_fn=filter_fn,
            compare_fn=compare_fn,
            span_name="S3FileManager.list_files",
        )

    def list_folders(
        self,
        prefix: str = "",
        filter_fn: Optional[FilterFn] = None,
        compare_fn: Optional[CompareFn] = None,
    ) -> List[str]:
        return self.lister.list_all(
            folder_prefix(prefix),
            directories_only=True,
            filter_fn=filter_fn,
            compare_fn=compare_fn,
            span_name="S3FileManager.list_folders",
        )

    def confirm_files_exist(
        self, filenames: Sequence[str], prefix: str = ""
    ) -> ExistenceResult:
        """HEAD every file concurrently; absent files are reported, not raised."""

        def check(filename: str) -> bool:
            key = join_key(prefix, filename)

            def absent(_) -> bool:
                self.ctx.verbose(
                    "%s not found in bucket %s.", filename, self.ctx.bucket
                )
                return False

            return self.ctx.span(
                "S3FileManager.confirm_files_exist",
                {"filename": key},
                lambda: self.ctx.retry.execute(
                    lambda: self.ctx.store.head_object(key) is not None,
                    action=f"to verify the existence of file {filename}",
                    on_not_found=absent,
                ),
            )

        filenames = list(filenames)
        if not filenames:
            return ExistenceResult(all_exist=True)
        workers = min(self.ctx.config.max_batch_workers, len(filenames))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="head") as pool:
            found = list(pool.map(check, filenames))

        missing = tuple(name for name, exists in zip(filenames, found) if not exists)
        self.ctx.verbose(
            "Checked %d file(s); missing: %d", len(filenames), len(missing)
        )
        return ExistenceResult(all_exist=not missing, missing_files=missing)

    def copy_file(
        self,
        source: str,
        destination_folder: str,
        new_filename: Optional[str] = None,
    ) -> CopyResult:
        """Server-side copy of ``source`` into ``destination_folder``."""
        destination = join_key(
            folder_prefix(destination_folder), new_filename or base_name(source)
        )

        def work() -> CopyResult:
            self.ctx.retry.execute(
                lambda: self.ctx.store.copy_object(source, destination),
                action=f"to copy {source} to {destination}",
            )
            self.ctx.verbose("Copied %s to %s", source, destination)
            return CopyResult(success=True, source=source, destination=destination)

        return self.ctx.span(
            "S3FileManager.copy_file",
            {"source": source, "destination": destination},
            work,
        )

    def _delete_after_copy(self, source: str) -> bool:
        """Delete the original; a failure leaves the copy in place."""
        try:
            self.ctx.retry.execute(
                lambda: self.ctx.store.delete_object(source),
                action=f"to delete original file {source}",
            )
            return True
        except TransferError as e:
            log_with_context(
                self.ctx.logger,
                logging.WARNING,
                f"Copied {source} but failed to delete the original: {e}",
                key=source,
                original_deleted=False,
            )
            return False

    def move_file(self, source: str, destination_folder: str) -> MoveResult:
        """Copy then delete. A failed delete is reported, never rolled back."""

        def work() -> MoveResult:
            copied = self.copy_file(source, destination_folder)
            return MoveResult(
                success=True,
                source=source,
                destination=copied.destination,
                original_deleted=self._delete_after_copy(source),
            )

        return self.ctx.span(
            "S3FileManager.move_file",
            {"source": source, "destination_folder": destination_folder},
            work,
        )

    def rename_file(self, file_path: str, new_name: str) -> RenameResult:
        """Rename within the same folder. Same partial-completion contract as move."""

        def work() -> RenameResult:
            copied = self.copy_file(
                file_path, parent_folder(file_path), new_filename=new_name
            )
            return RenameResult(
                success=True,
                old_path=file_path,
                new_path=copied.destination,
                original_deleted=self._delete_after_copy(file_path),
            )

        return self.ctx.span(
            "S3FileManager.rename_file",
            {"file_path": file_path, "new_name": new_name},
            work,
        )

    def delete_file(self, file_path: str) -> DeleteResult:
        """Delete one object. A missing object is a result, not an error."""

        def not_found(_) -> DeleteResult:
            self.ctx.verbose("%s not found; nothing deleted", file_path)
            return DeleteResult(
                success=False,
                deleted=False,
                file_path=file_path,
                reason="File not found",
            )

        def delete() -> DeleteResult:
            # S3 reports success for missing keys, so existence is checked first.
            self.ctx.store.head_object(file_path)
            self.ctx.store.delete_object(file_path)
            return DeleteResult(success=True, deleted=True, file_path=file_path)

        return self.ctx.span(
            "S3FileManager.delete_file",
            {"file_path": file_path},
            lambda: self.ctx.retry.execute(
                delete, action=f"to delete {file_path}", on_not_found=not_found
            ),
        )

    def delete_folder(self, prefix: str) -> BatchResult:
        """Delete every object under ``prefix`` in batches of up to 1000 keys."""
        label = f"Deletion of files with prefix {prefix}"

        def work() -> BatchResult:
            keys = self.lister.list_all(
                folder_prefix(prefix),
                span_name="S3FileManager.delete_folder > list_items",
            )
            if not keys:
                return BatchResult(message=f"No files found with prefix {prefix}")

            succeeded: List[str] = []
            failed: List[FailedItem] = []
            for start in range(0, len(keys), MAX_DELETE_BATCH):
                batch = keys[start:start + MAX_DELETE_BATCH]
                try:
                    errors = self.ctx.retry.execute(
                        lambda: self.ctx.store.delete_objects(batch),
                        action=f"to delete {len(batch)} file(s) under {prefix}",
                    )
                except TransferError as e:
                    failed.extend(FailedItem(identifier=key, cause=e) for key in batch)
                    self.ctx.verbose(
                        "Skipping %d file(s): %s", len(batch), e, level="warning"
                    )
                    continue
                errored = {err.key: err for err in errors}
                for key in batch:
                    if key in errored:
                        err = errored[key]
                        failed.append(
                            FailedItem(
                                identifier=key,
                                cause=TransferError(
                                    f"{err.code}: {err.message}",
                                    details={"key": key, "error_code": err.code},
                                ),
                            )
                        )
                        self.ctx.verbose(
                            "Failed to delete %s: %s", key, err.code, level="warning"
                        )
                    else:
                        succeeded.append(key)

            result = summarize(label, succeeded, failed)
            if failed:
                self.ctx.logger.warning(result.message)
            else:
                self.ctx.logger.info(result.message)
            return result

        return self.ctx.span("S3FileManager.delete_folder", {"prefix": prefix}, work)
