# Transfer-encoding codecs

from .base import Codec
from .registry import (
    CodecRegistry,
    STANDARD_CODECS,
    best,
    default_registry,
    install,
    lookup,
    supported,
    uninstall,
)
from .standard import Base64Codec, BinaryCodec, NBitCodec, QuotedPrintableCodec
from .uu import UUCodec, UUSection

__all__ = [
    "Codec",
    "CodecRegistry",
    "STANDARD_CODECS",
    "default_registry",
    "install",
    "uninstall",
    "lookup",
    "best",
    "supported",
    "BinaryCodec",
    "NBitCodec",
    "Base64Codec",
    "QuotedPrintableCodec",
    "UUCodec",
    "UUSection",
]
