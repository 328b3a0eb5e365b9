"""
Redoer which sniffs out uuencoded data in plain text parts, like:

    Content-type: text/plain

    begin 644 Hello.gif
    M1TE&.#=A$P`3`*$``/___P```("`@,#`P"P`````$P`3```"1X2/F<'MSTQ0
    ...
    `
    end

If a ``begin NNN`` line shows up within the first ``horizon`` lines, the
part is exploded into a multipart: the text before the first block
becomes a text/plain part and every ``begin ... end`` block becomes an
attachment.  The extracted attachments are not offered to redoers again.
"""

import io
import re
from typing import BinaryIO, List, Optional, TYPE_CHECKING

from .base import Redoer
from ..decoders.uu import UUCodec
from ..entity.body import Body
from ..entity.entity import Entity
from ..entity.header import Header
from ..exceptions import DecodeError
from ..models.mime_type import UNENCODED

if TYPE_CHECKING:
    from ..parsing.parser import MimeParser

DEFAULT_HORIZON = 24

UU_BEGIN = re.compile(rb"^begin [0-7]{3}")

EXTRACTED_PREAMBLE = [
    b"The following is a multipart MIME message which was extracted\n",
    b"from a uuencoded message.\n",
]

IMAGE_EXTENSIONS = {
    "gif": "image/gif",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "xbm": "image/xbm",
    "xpm": "image/xpm",
    "png": "image/png",
}


def guess_type(filename: Optional[str]) -> str:
    """Probable MIME type of an extracted file, from its extension."""
    match = re.search(r"\.(\w+)$", filename or "")
    if match:
        return IMAGE_EXTENSIONS.get(match.group(1).lower(), "application/octet-stream")
    return "application/octet-stream"


class RedoUU(Redoer):
    """
    Explode embedded uuencode into a synthetic multipart.

    Args:
        horizon: Lines to scan for a ``begin NNN`` line; negative for no limit
    """

    def __init__(self, horizon: int = DEFAULT_HORIZON):
        self.horizon = horizon

    def redo(
        self, instream: BinaryIO, entity: Entity, parser: "MimeParser"
    ) -> Optional[Entity]:
        parser.debug("sniffing around for UUENCODE")

        if entity.effective_type != "text/plain" or entity.header.mime_encoding not in UNENCODED:
            return None

        lineno = self._find_begin(instream)
        if lineno is None:
            where = (
                "anywhere in the message"
                if self.horizon < 0
                else f"in the first {self.horizon} lines"
            )
            parser.debug(f"did not find 'begin xxx' line {where}")
            return None
        parser.debug(f"found 'begin xxx' on line {lineno}")

        codec = parser.registry.lookup("x-uuencode")
        if not isinstance(codec, UUCodec):
            parser.debug("no uuencode codec installed")
            return None

        instream.seek(0)
        parts: List[Entity] = []
        while True:
            data = io.BytesIO()
            try:
                section = codec.decode_section(instream, data)
            except DecodeError:
                break

            # Text before the first block becomes the leading part
            if not parts and any(line.strip() for line in section.preamble):
                text = Entity.build(type="text/plain", encoding="7bit")
                text.body = self._store(parser, text.header, b"".join(section.preamble))
                parts.append(text)

            # x-unix-mode follows the dtmail convention
            attachment = Entity.build(
                type=guess_type(section.filename),
                encoding="base64",
                filename=section.filename,
            )
            attachment.header.set_attr("Content-Type", "x-unix-mode", f"0{section.mode or '644'}")
            attachment.body = self._store(parser, attachment.header, data.getvalue())
            parts.append(attachment)

        if not parts:
            return None

        top = entity.dup().make_multipart()
        top.parts = parts
        top.preamble = list(EXTRACTED_PREAMBLE)
        return top

    def _find_begin(self, instream: BinaryIO) -> Optional[int]:
        instream.seek(0)
        for lineno, line in enumerate(iter(instream.readline, b""), start=1):
            if 0 <= self.horizon < lineno:
                break
            if UU_BEGIN.match(line):
                return lineno
        return None

    @staticmethod
    def _store(parser: "MimeParser", header: Header, data: bytes) -> Body:
        body = parser.new_body_for(header)
        with body.open("w") as out:
            out.write(data)
        return body
