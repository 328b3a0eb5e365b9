"""
Body storage for decoded leaf data.

A body is written once, closed, and read back any number of times.
"""

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional, Union


class Body(ABC):
    """Abstract writable-then-readable byte store."""

    path: Optional[Path] = None

    @abstractmethod
    def open(self, mode: str = "r") -> BinaryIO:
        """
        Open the body.

        Args:
            mode: ``"r"`` to read, ``"w"`` to (re)write; always binary

        Returns:
            Binary file-like handle; close it to commit writes
        """

    def open_read(self) -> BinaryIO:
        return self.open("r")

    def open_write(self) -> BinaryIO:
        return self.open("w")

    def as_bytes(self) -> bytes:
        """Return the whole body."""
        with self.open("r") as fh:
            return fh.read()

    def purge(self) -> None:
        """Release any external storage."""


class _InCoreWriter(io.BytesIO):
    """BytesIO that hands its contents to the body when closed."""

    def __init__(self, body: "InCoreBody"):
        super().__init__()
        self._body = body

    def close(self) -> None:
        if not self.closed:
            self._body._data = self.getvalue()
        super().close()


class InCoreBody(Body):
    """Body held in memory."""

    def __init__(self, data: bytes = b""):
        self._data = data

    def open(self, mode: str = "r") -> BinaryIO:
        if mode.startswith("r"):
            return io.BytesIO(self._data)
        if mode.startswith("w"):
            return _InCoreWriter(self)
        raise ValueError(f"unsupported mode: {mode!r}")

    def as_bytes(self) -> bytes:
        return self._data

    def purge(self) -> None:
        self._data = b""

    def __repr__(self) -> str:
        return f"<InCoreBody {len(self._data)} bytes>"


class FileBody(Body):
    """Body stored in a file on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def open(self, mode: str = "r") -> BinaryIO:
        if mode.startswith("r"):
            return open(self.path, "rb")
        if mode.startswith("w"):
            return open(self.path, "wb")
        raise ValueError(f"unsupported mode: {mode!r}")

    def purge(self) -> None:
        self.path.unlink(missing_ok=True)

    def __repr__(self) -> str:
        return f"<FileBody {self.path}>"
