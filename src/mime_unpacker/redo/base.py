"""
Redoers: heuristics that re-examine a decoded leaf.

Some parts claim one format but carry another, e.g. a ``text/plain``
part holding uuencoded files.  Every decoded leaf is offered to each
installed redoer in turn.  A redoer that recognises something returns a
replacement entity; the parser then swaps it in for the leaf.
"""

from typing import BinaryIO, Optional, TYPE_CHECKING

from ..entity.entity import Entity

if TYPE_CHECKING:
    from ..parsing.parser import MimeParser


class Redoer:
    """Base redoer: never matches."""

    def redo(
        self, instream: BinaryIO, entity: Entity, parser: "MimeParser"
    ) -> Optional[Entity]:
        """
        Re-examine a decoded leaf.

        Must not modify ``entity``; build and return a new one instead.

        Args:
            instream: The leaf's decoded body, open for reading
            entity: The leaf entity
            parser: The parser doing the work (for diagnostics and bodies)

        Returns:
            Replacement entity, or None if there is nothing to redo
        """
        return None
