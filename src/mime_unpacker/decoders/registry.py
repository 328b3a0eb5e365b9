"""
Name-to-codec registry.

The registry maps lowercase encoding names to codec factories (usually a
``Codec`` subclass).  It is an open table: applications install their own
codecs next to, or instead of, the standard ones.  A process-wide
``default_registry`` is used unless a parser is given its own.
"""

from typing import BinaryIO, Callable, Dict, Optional, Union

import structlog

from .base import Codec
from .standard import Base64Codec, BinaryCodec, NBitCodec, QuotedPrintableCodec
from .uu import UUCodec
from ..exceptions import UnsupportedEncodingError

logger = structlog.get_logger(__name__)

CodecFactory = Callable[[str], Codec]

STANDARD_CODECS: Dict[str, CodecFactory] = {
    # Standard...
    "7bit": NBitCodec,
    "8bit": NBitCodec,
    "base64": Base64Codec,
    "binary": BinaryCodec,
    "none": BinaryCodec,
    "quoted-printable": QuotedPrintableCodec,
    # Non-standard...
    "x-uu": UUCodec,
    "x-uuencode": UUCodec,
}


class CodecRegistry:
    """
    Mutable table of codec factories, keyed by case-insensitive name.

    Expected to be configured once at startup and only read afterwards.
    """

    def __init__(self, codecs: Optional[Dict[str, CodecFactory]] = None):
        self._factories: Dict[str, CodecFactory] = {}
        for name, factory in (STANDARD_CODECS if codecs is None else codecs).items():
            self.register(name, factory)

    def register(self, name: str, factory: CodecFactory) -> None:
        """Install ``factory`` as the handler for encoding ``name``."""
        self._factories[name.lower()] = factory

    def unregister(self, name: str) -> None:
        """Remove support for encoding ``name`` (no-op if absent)."""
        self._factories.pop(name.lower(), None)

    def lookup(self, name: Optional[str]) -> Optional[Codec]:
        """
        Get a codec for the given encoding.

        Args:
            name: Encoding name, any case

        Returns:
            A fresh codec instance, or None if the encoding is unsupported
        """
        name = (name or "").strip().lower()
        factory = self._factories.get(name)
        if factory is None:
            return None
        return factory(name)

    def best(self, name: Optional[str]) -> Codec:
        """
        Like ``lookup``, but falls back to ``binary`` for unsupported names.

        Raises:
            UnsupportedEncodingError: If not even ``binary`` is installed
        """
        codec = self.lookup(name)
        if codec is None:
            logger.warning("unsupported_encoding", encoding=name, fallback="binary")
            codec = self.lookup("binary")
            if codec is None:
                raise UnsupportedEncodingError("no binary codec installed")
        return codec

    def supported(self, name: Optional[str] = None) -> Union[bool, Dict[str, CodecFactory]]:
        """
        With a name, tell whether it is handled; without, list all handlers.

        The returned mapping is a copy; changing it does not affect lookups.
        """
        if name is not None:
            return name.lower() in self._factories
        return dict(self._factories)

    def decode(self, codec: Codec, instream: BinaryIO, outstream: BinaryIO) -> None:
        """Run ``codec`` in the decoding direction."""
        codec.decode(instream, outstream)

    def encode(self, codec: Codec, instream: BinaryIO, outstream: BinaryIO) -> None:
        """Run ``codec`` in the encoding direction."""
        codec.encode(instream, outstream)


# Process-wide registry
default_registry = CodecRegistry()


def install(factory: CodecFactory, *names: str) -> None:
    """Install ``factory`` in the default registry for each of ``names``."""
    for name in names:
        default_registry.register(name, factory)


def uninstall(*names: str) -> None:
    """Remove each of ``names`` from the default registry."""
    for name in names:
        default_registry.unregister(name)


def lookup(name: Optional[str]) -> Optional[Codec]:
    """Look up ``name`` in the default registry."""
    return default_registry.lookup(name)


def best(name: Optional[str]) -> Codec:
    """Best-effort lookup in the default registry."""
    return default_registry.best(name)


def supported(name: Optional[str] = None):
    """Query the default registry; see ``CodecRegistry.supported``."""
    return default_registry.supported(name)
