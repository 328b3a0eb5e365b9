"""
The standard MIME transfer-encodings: 7bit, 8bit, binary, base64 and
quoted-printable.
"""

import binascii
import quopri
import re
from typing import BinaryIO

import structlog

from .base import Codec

logger = structlog.get_logger(__name__)

# Block size for binary copies
CHUNK_SIZE = 8192

# 57 raw bytes encode to one 76-character base64 line
BASE64_LINE_BYTES = 57

_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/]")


class BinaryCodec(Codec):
    """Identity codec using block reads; handles ``binary`` and ``none``."""

    def decode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        while True:
            buf = instream.read(CHUNK_SIZE)
            if not buf:
                break
            outstream.write(buf)

    def encode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        self.decode_it(instream, outstream)


class NBitCodec(Codec):
    """
    Line-oriented identity codec for ``7bit`` and ``8bit``.

    Data passes through unchanged; a 7bit stream carrying 8-bit bytes is
    only noted in the debug log.
    """

    def decode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        self._copy_lines(instream, outstream)

    def encode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        self._copy_lines(instream, outstream)

    def _copy_lines(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        high_bit_seen = False
        for line in iter(instream.readline, b""):
            if self.encoding == "7bit" and not high_bit_seen and not line.isascii():
                high_bit_seen = True
                logger.debug("eight_bit_data_in_7bit_stream")
            outstream.write(line)


class Base64Codec(Codec):
    """Streaming base64 codec; characters outside the alphabet are ignored."""

    def decode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        pending = b""
        for line in iter(instream.readline, b""):
            # Anything after padding is ignored, as decoders traditionally do
            data, pad, _ = line.partition(b"=")
            pending += _NON_BASE64.sub(b"", data)
            usable = len(pending) - (len(pending) % 4)
            if usable:
                outstream.write(binascii.a2b_base64(pending[:usable]))
                pending = pending[usable:]
            if pad:
                break

        if pending:
            # Tolerate truncated input by restoring the padding
            remainder = len(pending) % 4
            if remainder == 1:
                pending = pending[:-1]
            elif remainder:
                pending += b"=" * (4 - remainder)
            if pending:
                outstream.write(binascii.a2b_base64(pending))

    def encode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        carry = b""
        while True:
            buf = instream.read(CHUNK_SIZE)
            if not buf:
                break
            carry += buf
            usable = len(carry) - (len(carry) % BASE64_LINE_BYTES)
            for start in range(0, usable, BASE64_LINE_BYTES):
                outstream.write(
                    binascii.b2a_base64(carry[start:start + BASE64_LINE_BYTES])
                )
            carry = carry[usable:]
        if carry:
            outstream.write(binascii.b2a_base64(carry))


class QuotedPrintableCodec(Codec):
    """
    Quoted-printable codec.

    Encoding works line by line so that every line keeps its own ending:
    a CR before the LF (or anywhere else) is escaped as ``=0D`` rather
    than being normalized to the style of the first line.
    """

    def decode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        quopri.decode(instream, outstream)

    def encode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        lines = instream.read().split(b"\n")
        outstream.write(
            b"\n".join(
                binascii.b2a_qp(line, quotetabs=False, istext=False)
                for line in lines
            )
        )
