"""
Non-standard ``x-uuencode`` transfer-encoding.

Besides the plain ``decode``/``encode`` contract, this codec exposes
``decode_section``, which consumes one ``begin ... end`` block and reports
the text preceding it, the filename and the file mode.  Repeated calls on
the same stream walk successive blocks.
"""

import binascii
import re
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional

from .base import Codec
from ..exceptions import DecodeError

# uuencode lines carry at most 45 raw bytes
UU_LINE_BYTES = 45

BEGIN_LINE = re.compile(rb"^begin(?:\s+([0-7]+))?(?:\s+(.*?\S))?\s*$")
_LOWERCASE = re.compile(rb"[a-z]")


@dataclass
class UUSection:
    """
    Result of decoding one uuencoded block.

    Attributes:
        preamble: Lines of text found before the ``begin`` line
        filename: Filename from the ``begin`` line, if any
        mode: Octal file mode from the ``begin`` line, if any
    """

    preamble: List[bytes] = field(default_factory=list)
    filename: Optional[str] = None
    mode: Optional[str] = None


def _decode_uu_line(line: bytes) -> bytes:
    try:
        return binascii.a2b_uu(line)
    except binascii.Error:
        # Some encoders pad lines with garbage: trust the length byte
        nbytes = (((line[0] - 32) & 63) * 4 + 5) // 3
        return binascii.a2b_uu(line[:nbytes])


class UUCodec(Codec):
    """Codec for ``x-uu`` and ``x-uuencode``."""

    def decode_section(self, instream: BinaryIO, outstream: BinaryIO) -> UUSection:
        """
        Decode the next ``begin ... end`` block on ``instream``.

        Args:
            instream: Stream positioned anywhere before a ``begin`` line
            outstream: Receives the decoded bytes

        Returns:
            UUSection describing the block

        Raises:
            DecodeError: If no ``begin`` line is found before end of input
        """
        section = UUSection()

        for line in iter(instream.readline, b""):
            match = BEGIN_LINE.match(line.rstrip(b"\r\n"))
            if match:
                mode, filename = match.groups()
                section.mode = mode.decode("ascii") if mode else None
                if filename:
                    section.filename = filename.decode("utf-8", errors="replace")
                break
            section.preamble.append(line)
        else:
            raise DecodeError(self.encoding, "decoding failed: no begin line found")

        for line in iter(instream.readline, b""):
            if line.startswith(b"end"):
                break
            line = line.rstrip(b"\r\n")
            if not line or _LOWERCASE.search(line):
                continue
            # Skip lines whose length byte disagrees with the line length
            if ((((line[0] - 32) & 63) + 2) // 3) != (len(line) + 1) // 4:
                continue
            try:
                outstream.write(_decode_uu_line(line))
            except binascii.Error as e:
                raise DecodeError(self.encoding, f"decoding failed: {e}") from e

        return section

    def decode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        self.decode_section(instream, outstream)

    def encode_section(
        self,
        instream: BinaryIO,
        outstream: BinaryIO,
        filename: str = "",
        mode: str = "644",
    ) -> None:
        """Write ``instream`` as one ``begin MODE NAME ... end`` block."""
        outstream.write(f"begin {mode} {filename}".rstrip().encode("utf-8") + b"\n")
        while True:
            buf = instream.read(UU_LINE_BYTES)
            if not buf:
                break
            outstream.write(binascii.b2a_uu(buf, backtick=True))
        outstream.write(b"`\nend\n")

    def encode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        self.encode_section(instream, outstream)
