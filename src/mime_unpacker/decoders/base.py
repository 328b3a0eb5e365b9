"""
Abstract transfer-encoding codec.

A codec turns an encoded byte stream into a decoded one (and back).
Concrete codecs implement ``decode_it``/``encode_it``; callers use
``decode``/``encode``, which turn any failure into a ``CodecError``.
Codecs hold no state between invocations.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO

from ..exceptions import DecodeError, EncodeError, CodecError


class Codec(ABC):
    """
    Base class for transfer-encoding codecs.

    Args:
        encoding: The (lowercase) encoding name this instance handles
    """

    def __init__(self, encoding: str):
        self.encoding = encoding.lower()

    def decode(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        """
        Decode everything waiting on ``instream`` into ``outstream``.

        Raises:
            DecodeError: If the data could not be decoded
        """
        try:
            self.decode_it(instream, outstream)
        except CodecError:
            raise
        except (ValueError, OSError) as e:
            raise DecodeError(self.encoding, f"decoding failed: {e}") from e

    def encode(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        """
        Encode everything waiting on ``instream`` into ``outstream``.

        Raises:
            EncodeError: If the data could not be encoded
        """
        try:
            self.encode_it(instream, outstream)
        except CodecError:
            raise
        except (ValueError, OSError) as e:
            raise EncodeError(self.encoding, f"encoding failed: {e}") from e

    @abstractmethod
    def decode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        """Back end of ``decode``."""

    @abstractmethod
    def encode_it(self, instream: BinaryIO, outstream: BinaryIO) -> None:
        """Back end of ``encode``."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.encoding!r})"
