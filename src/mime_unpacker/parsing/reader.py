"""
Boundary-aware line reader.

A reader knows the stack of multipart boundaries currently in effect and
an optional set of terminator lines.  It reads from a binary stream until
it meets one of them, and remembers how it stopped (its end-of-stream
state) so the parser can decide what comes next.
"""

from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Set, Tuple, Union


class EOS(str, Enum):
    """How the last read stopped."""

    DONE = "DONE"  # hit a terminator line
    DELIM = "DELIM"  # hit a delimiter of the innermost boundary
    CLOSE = "CLOSE"  # hit the close delimiter of the innermost boundary
    EXT = "EXT"  # hit a delimiter of an outer boundary
    EOF = "EOF"  # ran out of input


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("ascii", errors="surrogateescape")


def _chomp(line: bytes) -> bytes:
    if line.endswith(b"\r\n"):
        return line[:-2]
    if line.endswith(b"\n"):
        return line[:-1]
    return line


class Reader:
    """Reads lines or raw chunks up to the next boundary or terminator."""

    def __init__(self, bounds: Optional[List[bytes]] = None):
        self._bounds: List[bytes] = list(bounds or [])
        self._terminators: Set[bytes] = set()
        self._table: Dict[bytes, Tuple[EOS, bytes]] = {}
        self.eos: EOS = EOS.EOF
        self.eos_boundary: Optional[bytes] = None
        self._rebuild()

    def spawn(self) -> "Reader":
        """New reader with the same boundaries and no terminators."""
        return Reader(self._bounds)

    def add_boundary(self, boundary: Union[str, bytes]) -> "Reader":
        """Push a new innermost boundary."""
        self._bounds.append(_as_bytes(boundary))
        self._rebuild()
        return self

    def add_terminator(self, line: Union[str, bytes]) -> "Reader":
        """Stop reading at a line equal to ``line`` (line break removed)."""
        self._terminators.add(_as_bytes(line))
        return self

    @property
    def depth(self) -> int:
        return len(self._bounds)

    @property
    def has_bounds(self) -> bool:
        return bool(self._bounds)

    @property
    def eos_type(self) -> EOS:
        return self.eos

    def _rebuild(self) -> None:
        table: Dict[bytes, Tuple[EOS, bytes]] = {}
        for bound in self._bounds[:-1]:
            table[b"--" + bound] = (EOS.EXT, bound)
            table[b"--" + bound + b"--"] = (EOS.EXT, bound)
        if self._bounds:
            inner = self._bounds[-1]
            table[b"--" + inner] = (EOS.DELIM, inner)
            table[b"--" + inner + b"--"] = (EOS.CLOSE, inner)
        self._table = table

    def _stop(self, line: bytes) -> Optional[Tuple[EOS, Optional[bytes]]]:
        if line[:2] == b"--" and self._table:
            hit = self._table.get(line.rstrip(b" \t\r\n"))
            if hit is not None:
                return hit
        if self._terminators and line.rstrip(b"\n") in self._terminators:
            return EOS.DONE, None
        return None

    def _finish(self, stop: Optional[Tuple[EOS, Optional[bytes]]]) -> None:
        self.eos, self.eos_boundary = stop if stop else (EOS.EOF, None)

    def read_lines(self, instream: BinaryIO) -> List[bytes]:
        """
        Read whole lines until a boundary, terminator, or end of input.

        Args:
            instream: Binary stream supporting ``readline``

        Returns:
            Lines read, verbatim, excluding the line that stopped the read
        """
        lines: List[bytes] = []
        stop = None
        for line in iter(instream.readline, b""):
            stop = self._stop(line)
            if stop:
                break
            lines.append(line)
        self._finish(stop)
        return lines

    def read_chunk(self, instream: BinaryIO, outstream: BinaryIO) -> EOS:
        """
        Copy data to ``outstream`` until a boundary, terminator or end of input.

        The line break before a boundary belongs to the boundary and is
        not copied.

        Returns:
            The end-of-stream state
        """
        held = b""
        stop = None
        for line in iter(instream.readline, b""):
            stop = self._stop(line)
            if stop:
                break
            outstream.write(held)
            held = line
        self._finish(stop)
        if self.eos in (EOS.DELIM, EOS.CLOSE, EOS.EXT):
            held = _chomp(held)
        outstream.write(held)
        return self.eos

    def __repr__(self) -> str:
        return f"<Reader depth={self.depth} eos={self.eos.value}>"
