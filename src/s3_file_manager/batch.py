"""Run one operation over many items without letting one failure stop the rest."""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from s3_file_manager.context import TransferContext
from s3_file_manager.results import BatchResult, FailedItem

T = TypeVar("T")


def summarize(
    label: str,
    succeeded: List[str],
    failed: List[FailedItem],
) -> BatchResult:
    total = len(succeeded) + len(failed)
    if total == 0:
        success, message = True, f"{label}: nothing to do"
    elif not failed:
        success, message = True, f"{label}: all {total} item(s) succeeded"
    elif len(failed) == total:
        success = False
        message = (
            f"{label}: all {total} item(s) failed. "
            "For details, enable verbose logging."
        )
    else:
        success = True
        message = (
            f"{label}: some item(s) failed ({len(failed)} of {total}). "
            "For details, enable verbose logging."
        )
    return BatchResult(
        succeeded_paths=tuple(succeeded),
        failed_items=tuple(failed),
        success=success,
        message=message,
    )


class BatchCoordinator:
    """Fans an operation out over a thread pool and collects per-item outcomes.

    Concurrency of the underlying store calls is bounded by the limiters used
    inside each operation; the pool size only caps the number of threads.
    """

    def __init__(self, ctx: TransferContext, max_workers: Optional[int] = None):
        self.ctx = ctx
        self.max_workers = max_workers or ctx.config.max_batch_workers

    def run_all(
        self,
        items: Iterable[T],
        operation: Callable[[T], Any],
        identify: Callable[[T], str] = str,
        label: str = "batch",
    ) -> BatchResult:
        """Apply ``operation`` to every item.

        The operation's return value (a key or path) is recorded as the
        succeeded path; when it returns None the item identifier is used.
        """
        items = list(items)
        if not items:
            return summarize(label, [], [])

        def run_one(item: T):
            try:
                return True, operation(item)
            except Exception as e:
                return False, e

        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="batch"
        ) as executor:
            outcomes = list(executor.map(run_one, items))

        succeeded: List[str] = []
        failed: List[FailedItem] = []
        for item, (ok, value) in zip(items, outcomes):
            identifier = identify(item)
            if ok:
                succeeded.append(str(value) if value is not None else identifier)
            else:
                failed.append(FailedItem(identifier=identifier, cause=value))
                self.ctx.verbose(
                    "%s: skipping %s: %s", label, identifier, value, level="warning"
                )

        result = summarize(label, succeeded, failed)
        if failed:
            self.ctx.logger.warning(
                "%s finished, but the following %d item(s) failed: %s",
                label,
                len(failed),
                ", ".join(result.failed_identifiers),
            )
        else:
            self.ctx.logger.info(result.message)
        return result
