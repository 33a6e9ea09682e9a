"""Aggregate paged list calls into one filtered, sorted sequence."""

import functools
from typing import Callable, List, Optional

from s3_file_manager.context import TransferContext

FilterFn = Callable[[str], bool]
CompareFn = Callable[[str, str], int]

DELIMITER = "/"


class Lister:
    def __init__(self, ctx: TransferContext):
        self.ctx = ctx

    def list_all(
        self,
        prefix: str = "",
        directories_only: bool = False,
        filter_fn: Optional[FilterFn] = None,
        compare_fn: Optional[CompareFn] = None,
        span_name: str = "S3FileManager.list_items",
    ) -> List[str]:
        """Follow continuation tokens until exhausted.

        Pages are fetched strictly one after another; each fetch is retried
        independently. ``filter_fn`` is applied per page, ``compare_fn``
        (a cmp-style comparator) to the final sequence.
        """
        kind = "directories" if directories_only else "files"

        def work() -> List[str]:
            items: List[str] = []
            seen = set()
            token: Optional[str] = None
            while True:
                page = self.ctx.retry.execute(
                    functools.partial(
                        self.ctx.store.list_page,
                        prefix=prefix,
                        delimiter=DELIMITER if directories_only else None,
                        continuation_token=token,
                    ),
                    action=f"to fetch list of {kind}",
                )
                entries = page.prefixes if directories_only else page.keys
                for entry in entries:
                    if not entry or (filter_fn is not None and not filter_fn(entry)):
                        continue
                    if directories_only:
                        if entry in seen:
                            continue
                        seen.add(entry)
                    items.append(entry)
                token = page.next_token
                if not token:
                    break

            if compare_fn is not None:
                items.sort(key=functools.cmp_to_key(compare_fn))
            else:
                items.sort()

            self.ctx.verbose(
                "Successfully retrieved %d %s%s",
                len(items),
                kind,
                f" with prefix '{prefix}'" if prefix else "",
            )
            return items

        return self.ctx.span(span_name, {"prefix": prefix}, work)
