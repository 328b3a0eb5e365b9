"""
Parse results: the diagnostics channel of one parse.

Every debug message, warning and error reported while parsing is kept
here together with the nesting depth at which it occurred.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from ..entity.header import Header


class Severity(str, Enum):
    """Severity of a parse diagnostic."""

    DEBUG = "debug"
    WARNING = "warning"
    ERROR = "error"


class ResultMessage(BaseModel):
    """One diagnostic message."""

    severity: Severity = Field(description="Message severity")
    depth: int = Field(0, description="Nesting depth when reported")
    text: str = Field(description="Message text")

    def __str__(self) -> str:
        return f"{'  ' * self.depth}{self.severity.value}: {self.text}"


class ParseResults:
    """
    Aggregates diagnostics for a single parse.

    Attributes:
        messages: All messages, in reporting order
        top_head: First top-level header read, kept even if the parse fails
    """

    def __init__(self):
        self.messages: List[ResultMessage] = []
        self.top_head: Optional["Header"] = None
        self._depth = 0

    @property
    def depth(self) -> int:
        return self._depth

    @contextmanager
    def level(self) -> Iterator[int]:
        """Enter one level of nesting for the duration of the block."""
        self._depth += 1
        try:
            yield self._depth
        finally:
            self._depth -= 1

    def msg(self, severity: Severity, text: str) -> ResultMessage:
        """Record a message at the current depth."""
        message = ResultMessage(severity=severity, depth=self._depth, text=text.rstrip())
        self.messages.append(message)
        return message

    def _texts(self, severity: Severity) -> List[str]:
        return [m.text for m in self.messages if m.severity == severity]

    def errors(self) -> List[str]:
        return self._texts(Severity.ERROR)

    def warnings(self) -> List[str]:
        return self._texts(Severity.WARNING)

    def debugs(self) -> List[str]:
        return self._texts(Severity.DEBUG)

    def __str__(self) -> str:
        return "\n".join(str(m) for m in self.messages)
