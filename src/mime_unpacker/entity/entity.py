"""
MIME entity: one node of the parsed tree.

An entity owns its header and either a body (leaf) or an ordered list of
parts (multipart, or a message container holding the nested message).
Multipart entities also keep the raw preamble and epilogue lines.
"""

import uuid
from typing import Iterator, List, Optional

from .body import Body
from .header import Header


def make_boundary() -> str:
    """Create a fresh multipart boundary token."""
    return f"----------=_{uuid.uuid4().hex}"


class Entity:
    """
    A parsed (or synthesized) MIME entity.

    Attributes:
        header: The entity's header
        body: Decoded body (leaf entities only)
        parts: Child entities (multipart and message containers only)
        preamble: Raw lines before the first boundary of a multipart
        epilogue: Raw lines after the closing boundary of a multipart
    """

    def __init__(
        self,
        header: Optional[Header] = None,
        body: Optional[Body] = None,
        parts: Optional[List["Entity"]] = None,
    ):
        self.header = header if header is not None else Header()
        self.body = body
        self.parts: List["Entity"] = list(parts or [])
        self.preamble: List[bytes] = []
        self.epilogue: List[bytes] = []
        self._effective_type: Optional[str] = None

    # ========================================================================
    # CONSTRUCTION
    # ========================================================================

    @classmethod
    def build(
        cls,
        type: str = "text/plain",
        encoding: str = "7bit",
        filename: Optional[str] = None,
        disposition: Optional[str] = None,
        boundary: Optional[str] = None,
    ) -> "Entity":
        """
        Build a new entity with a minimal MIME header and no data.

        Args:
            type: Content type
            encoding: Content-Transfer-Encoding to declare
            filename: Recommended filename (sets Content-Type name too)
            disposition: Content-Disposition; ``attachment`` if a filename
                is given and no disposition is
            boundary: Boundary for multipart types (generated if omitted)

        Returns:
            New Entity
        """
        header = Header.from_fields([("Content-Type", type)])
        if type.lower().startswith("multipart/"):
            header.set_attr("Content-Type", "boundary", boundary or make_boundary())
        if filename:
            header.set_attr("Content-Type", "name", filename)
            disposition = disposition or "attachment"
        header.add("Content-Transfer-Encoding", encoding)
        if disposition:
            header.add("Content-Disposition", disposition)
            if filename:
                header.set_attr("Content-Disposition", "filename", filename)
        return cls(header=header)

    def dup(self) -> "Entity":
        """Copy the header (not the data) into a new entity."""
        return Entity(header=self.header.copy())

    def make_multipart(self, subtype: str = "mixed") -> "Entity":
        """
        Turn this entity into a multipart.

        Content fields and any existing data move into a new first part;
        the remaining fields stay on this entity.
        """
        if self.is_multipart():
            return self

        content = [(k, v) for k, v in self.header.items() if k.lower().startswith("content-")]
        if self.body is not None or self.parts:
            inner = Entity(header=Header.from_fields(content), body=self.body, parts=self.parts)
            inner._effective_type = self._effective_type
            self.parts = [inner]
        self.body = None
        self._effective_type = None

        for name in {k for k, _ in content}:
            self.header.delete(name)
        self.header.add("Content-Type", f"multipart/{subtype}")
        self.header.set_attr("Content-Type", "boundary", make_boundary())
        self.header.add("Content-Transfer-Encoding", "7bit")
        return self

    # ========================================================================
    # MUTATION
    # ========================================================================

    def add_part(self, part: "Entity") -> None:
        self.parts.append(part)

    def reset(self, header: Header) -> None:
        """Drop all contents and start over with ``header``."""
        self.header = header
        self.body = None
        self.parts = []
        self.preamble = []
        self.epilogue = []
        self._effective_type = None

    def adopt(self, other: "Entity") -> None:
        """Replace all of this entity's contents with ``other``'s in one step."""
        (
            self.header,
            self.body,
            self.parts,
            self.preamble,
            self.epilogue,
            self._effective_type,
        ) = (
            other.header,
            other.body,
            other.parts,
            other.preamble,
            other.epilogue,
            other._effective_type,
        )

    # ========================================================================
    # ACCESSORS
    # ========================================================================

    @property
    def mime_type(self) -> str:
        return self.header.mime_type

    @property
    def effective_type(self) -> str:
        """The type the data should be treated as; the declared type unless overridden."""
        return self._effective_type or self.header.mime_type

    @effective_type.setter
    def effective_type(self, value: Optional[str]) -> None:
        self._effective_type = value.lower() if value else None

    def is_multipart(self) -> bool:
        return self.mime_type.startswith("multipart/")

    def walk(self) -> Iterator["Entity"]:
        """Yield this entity and all of its descendants, depth first."""
        yield self
        for part in self.parts:
            yield from part.walk()

    def purge(self) -> None:
        """Purge the bodies of this entity and all of its descendants."""
        for ent in self.walk():
            if ent.body is not None:
                ent.body.purge()

    def dump_skeleton(self, indent: int = 0) -> str:
        """
        Describe the entity tree, one field per line.

        Args:
            indent: Nesting level of this entity

        Returns:
            Multi-line description
        """
        pad = "    " * indent
        if self.body is None:
            body_file = "NONE"
        elif self.body.path is not None:
            body_file = str(self.body.path)
        else:
            body_file = "IN-CORE"

        lines = [
            f"{pad}Content-type: {self.mime_type}",
            f"{pad}Effective-type: {self.effective_type}",
            f"{pad}Body-file: {body_file}",
        ]
        subject = self.header.get("Subject")
        if subject:
            lines.append(f"{pad}Subject: {subject.strip()}")
        if self.parts:
            lines.append(f"{pad}Num-parts: {len(self.parts)}")
            lines.append(f"{pad}--")
            for part in self.parts:
                lines.append(part.dump_skeleton(indent + 1))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<Entity {self.effective_type} parts={len(self.parts)} body={self.body!r}>"
