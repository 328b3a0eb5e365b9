"""
MIME header storage and the handful of derived values the parser needs.

Fields are held in a ``compat32`` :class:`email.message.Message`, the same
lenient container the standard library uses, so parameter parsing, RFC 2231
values and filename recommendations come from :mod:`email`.
"""

import copy
import re
from email.header import decode_header, make_header
from email.message import Message
from email.parser import BytesHeaderParser
from email.policy import compat32
from typing import Iterable, List, Optional, Tuple

# A field line: printable non-colon characters, then a colon
FIELD_LINE = re.compile(rb"^[\x21-\x39\x3b-\x7e]+[ \t]*:")
# A folded continuation of the previous field
CONTINUATION = re.compile(rb"^[ \t]")

DEFAULT_ENCODING = "7bit"


def _to_str(value) -> str:
    return "" if value is None else str(value)


class Header:
    """
    The header of one MIME entity.

    Args:
        message: Existing header container to wrap (a new empty one if None)
    """

    def __init__(self, message: Optional[Message] = None):
        self._msg = message if message is not None else Message(policy=compat32)

    @classmethod
    def from_fields(cls, fields: Iterable[Tuple[str, str]]) -> "Header":
        """Build a header from ``(name, value)`` pairs, in order."""
        header = cls()
        for name, value in fields:
            header.add(name, value)
        return header

    # ========================================================================
    # EXTRACTION
    # ========================================================================

    def extract(self, lines: List[bytes]) -> List[bytes]:
        """
        Extract fields from raw header lines, replacing current contents.

        Extraction stops at the first line that is neither a field line nor
        a continuation of one.  Zero-length headers are admissible.

        Args:
            lines: Header lines, without the terminating blank line

        Returns:
            The lines that could not be parsed (empty on success)
        """
        accepted: List[bytes] = []
        for index, line in enumerate(lines):
            if FIELD_LINE.match(line) or (accepted and CONTINUATION.match(line)):
                accepted.append(line.rstrip(b"\r\n") + b"\n")
            else:
                leftover = list(lines[index:])
                break
        else:
            leftover = []

        self._msg = BytesHeaderParser(policy=compat32).parsebytes(
            b"".join(accepted) + b"\n"
        )
        return leftover

    def decode(self) -> None:
        """Decode RFC 2047 encoded-words in every field, keeping field order."""
        decoded = Message(policy=compat32)
        decoded.set_default_type(self._msg.get_default_type())
        for name, value in self._msg.items():
            value = _to_str(value)
            try:
                value = str(make_header(decode_header(value)))
            except (LookupError, ValueError, UnicodeDecodeError):
                pass  # keep the raw value
            decoded[name] = value
        self._msg = decoded

    # ========================================================================
    # DERIVED MIME VALUES
    # ========================================================================

    @property
    def mime_type(self) -> str:
        """Lowercase ``type/subtype``; the default type if none is declared."""
        return self._msg.get_content_type()

    def set_default_type(self, ctype: str) -> None:
        """Set the type reported when no Content-Type is present."""
        self._msg.set_default_type(ctype)

    def set_type(self, ctype: str) -> None:
        """Replace the declared type, keeping its parameters."""
        if "Content-Type" not in self._msg:
            self._msg["Content-Type"] = ctype
        else:
            self._msg.set_type(ctype)

    @property
    def mime_encoding(self) -> str:
        """Lowercase transfer-encoding name; ``7bit`` if none is declared."""
        value = _to_str(self._msg.get("Content-Transfer-Encoding")).strip().lower()
        return value.split()[0] if value else DEFAULT_ENCODING

    def set_encoding(self, encoding: str) -> None:
        self.set("Content-Transfer-Encoding", encoding)

    @property
    def multipart_boundary(self) -> Optional[str]:
        """The ``boundary`` parameter of the Content-Type, if any."""
        return self._msg.get_boundary()

    @property
    def recommended_filename(self) -> Optional[str]:
        """Filename suggested by Content-Disposition or Content-Type."""
        filename = self._msg.get_filename()
        return filename.strip() if filename else None

    def get_attr(self, field: str, param: str) -> Optional[str]:
        """Get a parameter of a structured field (e.g. Content-Type charset)."""
        value = self._msg.get_param(param, header=field)
        if isinstance(value, tuple):
            value = value[2]
        return value

    def set_attr(self, field: str, param: str, value: str) -> None:
        """Set a parameter of a structured field."""
        self._msg.set_param(param, value, header=field)

    # ========================================================================
    # FIELD ACCESS
    # ========================================================================

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self._msg.get(name)
        return default if value is None else _to_str(value)

    def get_all(self, name: str) -> List[str]:
        return [_to_str(v) for v in self._msg.get_all(name, [])]

    def add(self, name: str, value: str) -> None:
        self._msg[name] = value

    def set(self, name: str, value: str) -> None:
        """Replace every occurrence of ``name`` with a single field."""
        del self._msg[name]
        self._msg[name] = value

    def delete(self, name: str) -> None:
        del self._msg[name]

    def items(self) -> List[Tuple[str, str]]:
        return [(name, _to_str(value)) for name, value in self._msg.items()]

    def copy(self) -> "Header":
        return Header(copy.deepcopy(self._msg))

    def as_bytes(self) -> bytes:
        return self._msg.as_bytes()

    @property
    def message(self) -> Message:
        """The underlying :class:`email.message.Message`."""
        return self._msg

    def __contains__(self, name: str) -> bool:
        return name in self._msg

    def __getitem__(self, name: str) -> Optional[str]:
        return self.get(name)

    def __len__(self) -> int:
        return len(self._msg)

    def __repr__(self) -> str:
        return f"<Header {self.mime_type} {self.mime_encoding}>"
