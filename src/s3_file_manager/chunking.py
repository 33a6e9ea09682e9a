"""Split payload content into bounded-size parts for multipart transfer.

Resident bytes are sliced directly. Incremental sources are either buffered
(when their size is known and small enough) or streamed, in which case at most
one chunk plus one source block is held in memory at a time.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from s3_file_manager.exceptions import PreparationError
from s3_file_manager.payload import (
    BytesContent,
    Content,
    ReaderContent,
    StreamContent,
)

# Read size used when pulling from a file-like backing medium.
READ_BLOCK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class Chunk:
    """A contiguous byte range of a payload, 1-based part number."""

    part_number: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def use_multipart(size: Optional[int], threshold: int) -> bool:
    """Chunked transfer when size is unknown or exceeds the threshold."""
    return size is None or size > threshold


def chunk_count(size: int, chunk_size: int) -> int:
    return math.ceil(size / chunk_size) if size > 0 else 0


def chunk_bytes(data: bytes, chunk_size: int) -> Iterator[Chunk]:
    """Slice resident bytes into ceil(len / chunk_size) chunks."""
    view = memoryview(data)
    for index in range(chunk_count(len(data), chunk_size)):
        start = index * chunk_size
        end = min(start + chunk_size, len(data))
        yield Chunk(part_number=index + 1, data=bytes(view[start:end]))


def chunk_stream(blocks: Iterable[bytes], chunk_size: int) -> Iterator[Chunk]:
    """Re-block an incremental source into exact ``chunk_size`` chunks.

    The final chunk holds whatever remains and is never empty.
    """
    buffer = bytearray()
    part_number = 1
    for block in blocks:
        if not block:
            continue
        buffer.extend(block)
        while len(buffer) >= chunk_size:
            yield Chunk(part_number=part_number, data=bytes(buffer[:chunk_size]))
            del buffer[:chunk_size]
            part_number += 1
    if buffer:
        yield Chunk(part_number=part_number, data=bytes(buffer))


def iter_blocks(content: Content, block_size: int = READ_BLOCK_SIZE) -> Iterator[bytes]:
    """Yield raw byte blocks from any content variant."""
    if isinstance(content, BytesContent):
        if content.data:
            yield content.data
    elif isinstance(content, ReaderContent):
        while True:
            block = content.reader.read(block_size)
            if not block:
                break
            yield block.encode("utf-8") if isinstance(block, str) else bytes(block)
    elif isinstance(content, StreamContent):
        for block in content.source:
            yield block.encode("utf-8") if isinstance(block, str) else bytes(block)
    else:
        raise PreparationError(
            f"Cannot read content of type {type(content).__name__}"
        )


def read_all(content: Content) -> bytes:
    """Buffer any content variant fully into memory."""
    if isinstance(content, BytesContent):
        return content.data
    return b"".join(iter_blocks(content))


class ChunkSource:
    """Lazily produces the chunks of one payload.

    Iterating the source raises ``PreparationError`` if the underlying content
    cannot be read, whether that happens up front (buffering) or mid-stream.
    """

    def __init__(
        self,
        content: Content,
        size: Optional[int],
        chunk_size: int,
        buffer_ceiling: int,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.content = content
        self.size = size
        self.chunk_size = chunk_size
        self.buffer_ceiling = buffer_ceiling

    @property
    def streamed(self) -> bool:
        """True when content is consumed incrementally rather than buffered."""
        if isinstance(self.content, BytesContent):
            return False
        return self.size is None or self.size > self.buffer_ceiling

    def __iter__(self) -> Iterator[Chunk]:
        try:
            if isinstance(self.content, BytesContent):
                yield from chunk_bytes(self.content.data, self.chunk_size)
            elif self.streamed:
                yield from chunk_stream(iter_blocks(self.content), self.chunk_size)
            else:
                yield from chunk_bytes(read_all(self.content), self.chunk_size)
        except PreparationError:
            raise
        except Exception as e:
            raise PreparationError(
                f"Failed to prepare content for multipart upload: {e}",
                details={"error_type": type(e).__name__},
            ) from e
