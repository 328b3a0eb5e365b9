"""
Exception hierarchy for MIME parsing.

Warnings are never raised: they go to the parse results and the log.
Structural errors are raised only when the parser is not ignoring errors.
"""


class MimeUnpackerError(Exception):
    """Base class for all errors raised by this package."""


class StructuralError(MimeUnpackerError):
    """The stream does not have the shape its headers promise."""


class InternalError(MimeUnpackerError):
    """The parser reached a state that should be impossible."""


class CodecError(MimeUnpackerError):
    """A transfer-encoding could not be applied."""

    def __init__(self, encoding: str, message: str):
        self.encoding = encoding
        super().__init__(f"{encoding} {message}")


class DecodeError(CodecError):
    """Decoding an encoded stream failed."""

    def __init__(self, encoding: str, message: str = "decoding failed"):
        super().__init__(encoding, message)


class EncodeError(CodecError):
    """Encoding a raw stream failed."""

    def __init__(self, encoding: str, message: str = "encoding failed"):
        super().__init__(encoding, message)


class UnsupportedEncodingError(MimeUnpackerError):
    """No codec is available, not even the binary fallback."""
