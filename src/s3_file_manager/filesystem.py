"""Local filesystem access for upload-from-disk and download-to-disk."""

import shutil
from pathlib import Path
from typing import BinaryIO, Union

PathLike = Union[str, Path]

COPY_BUFFER_SIZE = 1024 * 1024


class LocalFilesystem:
    def size(self, path: PathLike) -> int:
        return Path(path).stat().st_size

    def read_bytes(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()

    def open_read(self, path: PathLike) -> BinaryIO:
        return open(path, "rb")

    def makedirs(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_bytes(self, path: PathLike, data: bytes) -> None:
        Path(path).write_bytes(data)

    def write_stream(self, path: PathLike, source) -> int:
        """Copy a readable source to ``path`` without buffering it whole."""
        with open(path, "wb") as out:
            shutil.copyfileobj(source, out, COPY_BUFFER_SIZE)
            return out.tell()

    def remove(self, path: PathLike) -> None:
        Path(path).unlink(missing_ok=True)
