"""
MIME stream parser.

Splits MIME messages into a tree of entities, decoding transfer-encoded
bodies on the way and re-parsing encoded containers once decoded.

Example:
    >>> from mime_unpacker import MimeParser
    >>> parser = MimeParser(output_dir="/tmp/mime")
    >>> entity = parser.parse_open("message.eml")
    >>> print(entity.dump_skeleton())
"""

from .config import NestedMessagePolicy, Settings, settings
from .decoders import CodecRegistry, default_registry
from .entity import Entity, Header
from .exceptions import (
    CodecError,
    DecodeError,
    EncodeError,
    InternalError,
    MimeUnpackerError,
    StructuralError,
    UnsupportedEncodingError,
)
from .parsing import FileInto, FileUnder, MimeParser
from .redo import Redoer, RedoUU
from .version import __version__

__all__ = [
    "MimeParser",
    "Entity",
    "Header",
    "Settings",
    "settings",
    "NestedMessagePolicy",
    "CodecRegistry",
    "default_registry",
    "FileInto",
    "FileUnder",
    "Redoer",
    "RedoUU",
    "MimeUnpackerError",
    "StructuralError",
    "InternalError",
    "CodecError",
    "DecodeError",
    "EncodeError",
    "UnsupportedEncodingError",
    "__version__",
]
