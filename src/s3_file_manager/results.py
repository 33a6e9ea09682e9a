"""Immutable results returned by file and batch operations."""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class FailedItem:
    identifier: str
    cause: BaseException


@dataclass(frozen=True)
class BatchResult:
    """Outcome of an operation applied to many independent items.

    ``success`` is False only when every item failed.
    """

    succeeded_paths: Tuple[str, ...] = ()
    failed_items: Tuple[FailedItem, ...] = ()
    success: bool = True
    message: str = ""

    @property
    def failed_identifiers(self) -> Tuple[str, ...]:
        return tuple(item.identifier for item in self.failed_items)


@dataclass(frozen=True)
class ExistenceResult:
    all_exist: bool
    missing_files: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DeleteResult:
    success: bool
    deleted: bool
    file_path: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class CopyResult:
    success: bool
    source: str
    destination: str


@dataclass(frozen=True)
class MoveResult:
    success: bool
    source: str
    destination: str
    original_deleted: bool


@dataclass(frozen=True)
class RenameResult:
    success: bool
    old_path: str
    new_path: str
    original_deleted: bool
