"""Payload shapes accepted by the upload engine.

A payload's content is one of three variants:

- ``BytesContent``: resident bytes, size known.
- ``ReaderContent``: a file-like backing medium read incrementally with ``read(n)``.
- ``StreamContent``: any iterable of byte blocks of unknown total size.
"""

import mimetypes
from collections import abc
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO, Iterable, Optional, Tuple, Union

from s3_file_manager.exceptions import InvalidPayloadError

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ContentKind(Enum):
    BYTES = "bytes"
    READER = "reader"
    STREAM = "stream"


@dataclass(frozen=True)
class BytesContent:
    data: bytes

    def __post_init__(self):
        if isinstance(self.data, str):
            object.__setattr__(self, "data", self.data.encode("utf-8"))
        elif not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class ReaderContent:
    reader: BinaryIO


@dataclass(frozen=True)
class StreamContent:
    source: Iterable[bytes]


Content = Union[BytesContent, ReaderContent, StreamContent]


@dataclass(frozen=True)
class Payload:
    """A named unit of data. Borrowed by a transfer, never retained."""

    name: str
    content: Content
    content_type: Optional[str] = None
    size_hint_bytes: Optional[int] = None

    @classmethod
    def of(
        cls,
        name: str,
        raw: Any,
        content_type: Optional[str] = None,
        size_hint_bytes: Optional[int] = None,
    ) -> "Payload":
        """Wrap raw content (str, bytes-like, file-like or iterable) in a payload."""
        return cls(
            name=name,
            content=as_content(raw),
            content_type=content_type,
            size_hint_bytes=size_hint_bytes,
        )


def as_content(raw: Any) -> Content:
    """Coerce raw caller data into one of the content variants."""
    if isinstance(raw, (BytesContent, ReaderContent, StreamContent)):
        return raw
    if isinstance(raw, (str, bytes, bytearray, memoryview)):
        return BytesContent(raw)
    if callable(getattr(raw, "read", None)):
        return ReaderContent(raw)
    if isinstance(raw, abc.Iterable):
        return StreamContent(raw)
    raise InvalidPayloadError(
        f"Unsupported payload content type: {type(raw).__name__}",
        details={"type": type(raw).__name__},
    )


def classify(payload: Payload) -> Tuple[ContentKind, Optional[int]]:
    """Return the content kind and byte length (None when unknown)."""
    content = payload.content
    hint = payload.size_hint_bytes
    if isinstance(content, BytesContent):
        return ContentKind.BYTES, len(content.data)
    if isinstance(content, ReaderContent):
        return ContentKind.READER, hint
    if isinstance(content, StreamContent):
        return ContentKind.STREAM, hint
    raise InvalidPayloadError(
        f"Unsupported payload content for {payload.name}: "
        f"{type(content).__name__}"
    )


def resolve_content_type(name: str, explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_CONTENT_TYPE
