"""Capabilities shared by every transfer component, built once per manager."""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, TypeVar

from s3_file_manager.config import TransferConfig
from s3_file_manager.filesystem import LocalFilesystem
from s3_file_manager.retry import RetryPolicy
from s3_file_manager.store import ObjectStore
from s3_file_manager.tracing import WithSpan

T = TypeVar("T")

_span_override: ContextVar[Optional[Tuple[Optional[str], Dict[str, Any]]]] = (
    ContextVar("span_override", default=None)
)


@contextmanager
def span_options(
    name: Optional[str] = None, attributes: Optional[Dict[str, Any]] = None
) -> Iterator[None]:
    """Relabel the next top-level span opened in this context.

    Nested spans keep their own names.
    """
    if name is None and not attributes:
        yield
        return
    token = _span_override.set((name, dict(attributes or {})))
    try:
        yield
    finally:
        _span_override.reset(token)


@dataclass(frozen=True)
class TransferContext:
    config: TransferConfig
    store: ObjectStore
    logger: logging.Logger
    with_span: WithSpan
    retry: RetryPolicy
    filesystem: LocalFilesystem

    @property
    def bucket(self) -> str:
        return self.store.bucket

    def span(
        self, name: str, attributes: Optional[Dict[str, Any]], work: Callable[[], T]
    ) -> T:
        attrs = {"bucket": self.bucket}
        attrs.update(attributes or {})
        override = _span_override.get()
        if override is not None:
            _span_override.set(None)
            name = override[0] or name
            attrs.update(override[1])
        return self.with_span(name, attrs, work)

    def verbose(self, message: str, *args, level: str = "info") -> None:
        """Log only when verbose logging is enabled."""
        if self.config.verbose_logging:
            getattr(self.logger, level)(message, *args)
