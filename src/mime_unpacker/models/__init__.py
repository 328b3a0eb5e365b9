# Data models

from .mime_type import Classification, MESSAGE_TYPES, MimeType, UNENCODED, classify
from .results import ParseResults, ResultMessage, Severity

__all__ = [
    "Classification",
    "MimeType",
    "MESSAGE_TYPES",
    "UNENCODED",
    "classify",
    "ParseResults",
    "ResultMessage",
    "Severity",
]
