"""
MIME type value object and entity classification.

Classification decides how a part's (decoded) body is parsed; it is a
small closed decision, kept apart from the open codec registry.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Classification(str, Enum):
    """How the unencoded body of a part is to be parsed."""

    MULTIPART = "multipart"  # boundary-delimited MIME multipart body
    MESSAGE = "message"  # re-parseable embedded message
    SINGLEPART = "singlepart"  # anything else (e.g. text/html)


# Full types that hold a nested message when extraction is enabled
MESSAGE_TYPES = frozenset({"message/rfc822", "application/x-pkcs7-mime"})

# Transfer-encodings under which the body is not further wrapped
UNENCODED = frozenset({"7bit", "8bit", "binary"})


class MimeType(BaseModel):
    """A parsed ``type/subtype`` pair, lowercased."""

    type: str = Field(description="Primary type, e.g. 'multipart'")
    subtype: str = Field("", description="Subtype, e.g. 'mixed'")

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, value: str) -> "MimeType":
        """
        Parse a ``type/subtype`` string.

        Parameters after ``;`` are ignored; a missing subtype is empty.

        Args:
            value: MIME type string

        Returns:
            MimeType instance
        """
        value = (value or "").split(";", 1)[0].strip().lower()
        primary, _, subtype = value.partition("/")
        return cls(type=primary.strip(), subtype=subtype.strip())

    @property
    def full(self) -> str:
        return f"{self.type}/{self.subtype}"

    def __str__(self) -> str:
        return self.full


def classify(mime_type: MimeType, extract_nested: bool) -> Classification:
    """
    Classify a part by its MIME type.

    Only classifies as MESSAGE when nested-message extraction is enabled;
    otherwise an embedded message is just a flat singlepart.

    Args:
        mime_type: Declared (or defaulted) MIME type
        extract_nested: Whether nested messages are being extracted

    Returns:
        Classification of the part
    """
    if mime_type.type == "multipart":
        return Classification.MULTIPART
    if extract_nested and mime_type.full in MESSAGE_TYPES:
        return Classification.MESSAGE
    return Classification.SINGLEPART
