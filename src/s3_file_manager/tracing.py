"""Span-wrapping hook used around every retried operation group."""

from typing import Any, Callable, Dict, TypeVar

T = TypeVar("T")

WithSpan = Callable[[str, Dict[str, Any], Callable[[], T]], T]


def no_span(name: str, attributes: Dict[str, Any], work: Callable[[], T]) -> T:
    """Default hook when tracing is disabled: run the work directly."""
    return work()
