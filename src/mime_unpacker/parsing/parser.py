"""
Recursive-descent MIME parser.

This module turns a byte stream into a tree of entities.  Each part is
handled in three steps:

1. Read its header (tolerating mailbox ``From `` and POP3 ``+OK`` lines).
2. Classify its body as multipart, nested message or singlepart.
3. If the body is not transfer-encoded, parse it according to that
   classification.  Otherwise decode it as a singlepart first; encoded
   containers are re-parsed later from the decoded bytes, through the
   task queue, so deeply nested encodings are handled breadth first.

Every finished leaf is also offered to the installed redoers.
"""

import io
import re
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

import structlog

from ..config import NestedMessagePolicy, Settings, settings as default_settings
from ..decoders.registry import CodecRegistry, default_registry
from ..entity.body import Body, InCoreBody
from ..entity.entity import Entity
from ..entity.header import Header
from ..exceptions import CodecError, InternalError, StructuralError
from ..models.mime_type import UNENCODED, Classification, MimeType, classify
from ..models.results import ParseResults, Severity
from ..redo.base import Redoer
from ..redo.uu import RedoUU
from .filer import FileInto, Filer
from .reader import EOS, Reader
from .tasks import ParseTopLevel, RedoLeaf, ReparseContainer, Task, TaskQueue

logger = structlog.get_logger(__name__)

UNPARSEABLE_MULTIPART = "application/x-unparseable-multipart"

_MAILBOX_FROM = re.compile(rb"^>?From ")
_LINE_END = re.compile(rb"[\r\n]+$")

# Reader states meaning a boundary line was consumed
_AT_BOUNDARY = (EOS.DELIM, EOS.CLOSE, EOS.EXT)


class MimeParser:
    """
    Parses MIME streams into :class:`Entity` trees.

    Args:
        settings: Base configuration (the global settings if None)
        filer: Output policy for on-disk bodies (files into
            ``settings.output_dir`` if None)
        registry: Codec registry (the process-wide one if None)
        **overrides: Individual settings to override, e.g.
            ``ignore_errors=False``

    Example:
        >>> parser = MimeParser(output_to_core=True)
        >>> entity = parser.parse_data(b"Content-Type: text/plain\\n\\nhi\\n")
        >>> entity.body.as_bytes()
        b'hi\\n'
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        filer: Optional[Filer] = None,
        registry: Optional[CodecRegistry] = None,
        **overrides,
    ):
        base = settings or default_settings
        self.settings = Settings(**{**base.model_dump(), **overrides})
        self.registry = registry if registry is not None else default_registry
        self.filer = filer or FileInto(
            self.settings.output_dir, prefix=self.settings.output_prefix
        )

        self._redoers: List[Tuple[str, Redoer]] = []
        self._tasks = TaskQueue()
        self._results = ParseResults()
        self._tmp: Optional[BinaryIO] = None

        if self.settings.extract_uuencode:
            self.extract_uuencode(True)

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    def redoer(self, name: str, redoer: Optional[Redoer]) -> None:
        """
        Add, replace or remove a named redoer.

        Redoers run in the order they were added; a replaced redoer moves
        to the end.  A ``redoer`` of None removes ``name``.
        """
        self._redoers = [(n, r) for n, r in self._redoers if n != name]
        if redoer is not None:
            self._redoers.append((name, redoer))

    def extract_uuencode(self, enabled: bool) -> None:
        """Install (or remove) the uuencode sniffer as ``extract_uuencode``."""
        self.settings.extract_uuencode = enabled
        self.redoer(
            "extract_uuencode",
            RedoUU(horizon=self.settings.uu_horizon) if enabled else None,
        )

    @property
    def redoers(self) -> List[Tuple[str, Redoer]]:
        return list(self._redoers)

    @property
    def extract_nested(self) -> bool:
        return self.settings.extract_nested_messages != NestedMessagePolicy.OFF

    # ========================================================================
    # DIAGNOSTICS
    # ========================================================================

    def debug(self, text: str) -> None:
        self._results.msg(Severity.DEBUG, text)
        logger.debug("parser_debug", detail=text, depth=self._results.depth)

    def whine(self, text: str) -> None:
        """Report a recoverable anomaly; parsing continues."""
        self._results.msg(Severity.WARNING, text)
        logger.warning("parser_warning", detail=text, depth=self._results.depth)

    def error(self, text: str) -> None:
        """
        Report a possibly-forgivable parse error.

        Raises:
            StructuralError: Unless the parser is ignoring errors
        """
        self._results.msg(Severity.ERROR, text)
        logger.error("parser_error", detail=text, depth=self._results.depth)
        if not self.settings.ignore_errors:
            raise StructuralError(text)

    @property
    def results(self) -> ParseResults:
        """Diagnostics of the last parse."""
        return self._results

    @property
    def last_error(self) -> str:
        """The errors (if any) that were ignored in the last parse."""
        return "\n".join(self._results.errors())

    @property
    def last_head(self) -> Optional[Header]:
        """Top-level header of the last stream parsed, even if parsing failed."""
        return self._results.top_head

    # ========================================================================
    # STORAGE
    # ========================================================================

    def new_body_for(self, header: Header) -> Body:
        """Return a new body to receive the decoded data of a part."""
        if self.settings.output_to_core:
            self.debug("outputting body to core")
            return InCoreBody()
        body = self.filer.new_body_for(header)
        self.debug(f"outputting body to disk file: {body.path}")
        return body

    def new_tmpfile(self, recycle: Optional[BinaryIO] = None) -> BinaryIO:
        """
        Return a handle for holding a part's encoded data.

        Args:
            recycle: A handle returned earlier; rewound and truncated for
                reuse when possible

        Returns:
            Binary read/write handle
        """
        if recycle is not None and not recycle.closed:
            self.debug("recycling tmpfile")
            recycle.seek(0)
            recycle.truncate(0)
            return recycle
        if self.settings.tmp_to_core:
            return io.BytesIO()
        return tempfile.TemporaryFile()

    # ========================================================================
    # PARSING: COMPONENTS
    # ========================================================================

    def process_header(self, instream: BinaryIO, rdr: Reader) -> Header:
        """
        Read and return the next header, up to and including its blank line.

        The way the header ended is copied to ``rdr``: if it ran into a
        boundary, that boundary line is already consumed and the part has
        no body.

        Raises:
            StructuralError: If the header is unterminated or unparseable
                (unless ignoring errors)
        """
        self.debug("process_header")

        hdr_rdr = rdr.spawn().add_terminator(b"").add_terminator(b"\r")
        lines = [_LINE_END.sub(b"\n", line) for line in hdr_rdr.read_lines(instream)]

        # People parse mailboxes and POP3 dumps: skip their envelope lines
        while lines:
            if _MAILBOX_FROM.match(lines[0]):
                self.whine("skipping bogus mailbox 'From ' line")
                lines.pop(0)
            elif lines[0].startswith(b"+OK"):
                self.whine("skipping bogus POP3 '+OK' line")
                lines.pop(0)
            else:
                break

        # Zero-size headers are admissible
        header = Header()
        leftover = header.extract(lines)
        if self._results.top_head is None:
            self._results.top_head = header

        rdr.eos, rdr.eos_boundary = hdr_rdr.eos, hdr_rdr.eos_boundary
        if hdr_rdr.eos_type in _AT_BOUNDARY and not lines:
            # RFC 2046 allows a body part with neither header nor body
            self.whine("empty body part")
        elif hdr_rdr.eos_type != EOS.DONE:
            self.error("unexpected end of header")
        if leftover:
            near = b"".join(leftover[:3]).decode("latin-1")
            self.error(f"couldn't parse head; error near:\n{near}")

        if self.settings.decode_headers:
            header.decode()
        return header

    def process_multipart(
        self,
        instream: BinaryIO,
        rdr: Reader,
        ent: Entity,
        predecoded: bool = False,
    ) -> None:
        """
        Parse a multipart body into ``ent``.

        The input is assumed to be unencoded regardless of the declared
        transfer-encoding, which is what allows re-parsing decoded data.

        Args:
            instream: Stream positioned at the start of the body
            rdr: Reader for the context this multipart lives in
            ent: Entity whose header was already read
            predecoded: The body was already decoded into ``ent.body``
        """
        self.debug("process_multipart...")

        # Parts of a multipart/digest default to message/rfc822
        mime_type = MimeType.parse(ent.header.mime_type)
        retype = "message/rfc822" if mime_type.subtype == "digest" else None

        bound = ent.header.multipart_boundary
        if bound is None or "\r" in bound or "\n" in bound:
            ent.effective_type = UNPARSEABLE_MULTIPART
            self.error("multipart boundary is missing, or contains CR or LF")
            if not predecoded:
                self.process_singlepart(instream, rdr, ent)
            return

        part_rdr = rdr.spawn().add_boundary(bound)

        ent.preamble = part_rdr.read_lines(instream)
        eos = part_rdr.eos_type
        if eos == EOS.DELIM:
            more_parts = True
        elif eos == EOS.CLOSE:
            self.whine("empty multipart message")
            more_parts = False
        else:
            self.error("unexpected end of preamble")
            return

        partno = 0
        while more_parts:
            partno += 1
            self.debug(f"parsing part {partno}...")
            part = self.process_part(instream, part_rdr, retype=retype)
            ent.add_part(part)

            eos = part_rdr.eos_type
            if eos == EOS.DELIM:
                more_parts = True
            elif eos == EOS.CLOSE:
                more_parts = False
            else:
                self.error("unexpected end of parts before epilogue")
                return

        # The epilogue is read with the parent's reader, which does not
        # know this multipart's boundary
        self.debug("process_epilogue")
        ent.epilogue = rdr.read_lines(instream)

    def process_singlepart(self, instream: BinaryIO, rdr: Reader, ent: Entity) -> None:
        """Decode a leaf body into a new body object attached to ``ent``."""
        self.debug("process_singlepart...")
        header = ent.header

        # Without boundaries the rest of the input is the body
        if not rdr.has_bounds:
            self.debug("taking shortcut")
            encoded = instream
            rdr.eos = EOS.EOF
        else:
            self.debug("using temp file")
            encoded = self.new_tmpfile(self._tmp)
            if self.settings.tmp_recycling:
                self._tmp = encoded

            rdr.read_chunk(instream, encoded)
            if rdr.eos_type not in (EOS.DELIM, EOS.CLOSE):
                self.error("part did not end with expected boundary")

            encoded.flush()
            encoded.seek(0)

        encoding = header.mime_encoding
        codec = self.registry.lookup(encoding)
        if codec is None:
            # RFC 2045: treat unknown transfer-encodings as opaque data
            self.whine(
                f"Unsupported encoding '{encoding}': using 'binary'... "
                "The entity will have an effective MIME type of "
                "application/octet-stream."
            )
            ent.effective_type = "application/octet-stream"
            codec = self.registry.best("binary")

        body = self.new_body_for(header)
        try:
            with body.open("w") as decoded:
                try:
                    codec.decode(encoded, decoded)
                except CodecError as e:
                    self.error(str(e))
        finally:
            if encoded is not instream and encoded is not self._tmp:
                encoded.close()

        ent.body = body

        # The decoded data may hide a container of a non-standard format
        self._tasks.enqueue(RedoLeaf(entity=ent))

    def process_message(self, instream: BinaryIO, rdr: Reader, ent: Entity) -> None:
        """
        Parse an embedded message into ``ent``.

        Under NEST the message becomes the sole part of ``ent``; under
        REPLACE it is parsed straight into ``ent``, whose own header is lost.
        """
        self.debug("process_message")

        if self.settings.extract_nested_messages == NestedMessagePolicy.REPLACE:
            self.process_part(instream, rdr, entity=ent)
        else:
            msg = self.process_part(instream, rdr)
            ent.body = None
            ent.add_part(msg)

    def process_part(
        self,
        instream: BinaryIO,
        rdr: Optional[Reader] = None,
        retype: Optional[str] = None,
        entity: Optional[Entity] = None,
    ) -> Entity:
        """
        Parse one part: its header, then its body.

        Args:
            instream: Stream positioned at the start of the part's header
            rdr: Reader for the enclosing context (a fresh one if None)
            retype: Content type to assume when the part declares none
            entity: Entity to fill in place (a new one if None)

        Returns:
            The parsed entity

        Raises:
            StructuralError: On parse errors, unless ignoring errors
            InternalError: On an impossible classification
        """
        rdr = rdr or Reader()
        with self._results.level():
            ent = entity if entity is not None else Entity()
            header = self.process_header(instream, rdr)
            ent.reset(header)
            if retype:
                header.set_default_type(retype)

            if rdr.eos_type in _AT_BOUNDARY:
                self.debug("part ended inside its header")
                body = self.new_body_for(header)
                with body.open("w"):
                    pass
                ent.body = body
                return ent

            mime_type = MimeType.parse(header.mime_type)
            kind = classify(mime_type, self.extract_nested)
            self.debug(f"classify: type = {mime_type.type}, subtype = {mime_type.subtype}")

            if header.mime_encoding in UNENCODED:
                self._dispatch(kind, instream, rdr, ent)
            else:
                # Encoded bodies must be decoded before they can be parsed
                self.process_singlepart(instream, rdr, ent)
                if kind != Classification.SINGLEPART and self.settings.extract_encoded_containers:
                    self._tasks.enqueue(ReparseContainer(entity=ent, classification=kind))
        return ent

    def _dispatch(self, kind: Classification, instream: BinaryIO, rdr: Reader, ent: Entity) -> None:
        if kind == Classification.MULTIPART:
            self.process_multipart(instream, rdr, ent)
        elif kind == Classification.MESSAGE:
            self.process_message(instream, rdr, ent)
        elif kind == Classification.SINGLEPART:
            self.process_singlepart(instream, rdr, ent)
        else:
            raise InternalError(f"unknown classification '{kind}'")

    # ========================================================================
    # TASKS
    # ========================================================================

    def _run_task(self, task: Task) -> None:
        self.debug(f"RUN TASK: {task.name}")
        with self._results.level():
            if isinstance(task, ParseTopLevel):
                task.entity = self.process_part(task.stream)
            elif isinstance(task, RedoLeaf):
                self._redo_singlepart(task.entity)
            elif isinstance(task, ReparseContainer):
                self._reparse_container(task.entity, task.classification)
            else:
                raise InternalError(f"unknown task '{task.name}'")

    def _redo_singlepart(self, ent: Entity) -> None:
        if ent.body is None:
            return
        self.debug(f"{len(self._redoers)} redoers installed")
        for name, redoer in self._redoers:
            self.debug(f"trying redoer: {name}")
            with self._results.level():
                try:
                    with ent.body.open("r") as instream:
                        new = redoer.redo(instream, ent, self)
                except Exception as e:
                    # Failed redoers are skipped
                    self.debug(f"redoer {name} failed: {e}")
                    continue
            if new is not None:
                self.debug(f"matched redoer: {name}")
                self._replace_contents(ent, new)
                break

    def _replace_contents(self, ent: Entity, new: Entity) -> None:
        old_body = ent.body
        ent.adopt(new)
        self._discard_body(ent, old_body)

    def _discard_body(self, ent: Entity, old_body: Optional[Body]) -> None:
        # A body the entity no longer holds would otherwise linger on disk
        if old_body is not None and ent.body is not old_body:
            self.debug("purging replaced body")
            old_body.purge()

    def _reparse_container(self, ent: Entity, kind: Classification) -> None:
        if ent.body is None:
            raise InternalError("encoded container has no decoded body")
        decoded = ent.body
        with decoded.open("r") as re_in:
            if kind == Classification.MULTIPART:
                self.process_multipart(re_in, Reader(), ent, predecoded=True)
                if ent.parts:
                    ent.body = None
            elif kind == Classification.MESSAGE:
                self.process_message(re_in, Reader(), ent)
            else:
                raise InternalError(f"cannot reparse a '{kind}' entity")
        self._discard_body(ent, decoded)

    # ========================================================================
    # PARSING: ENTRY POINTS
    # ========================================================================

    def init_parse(self) -> None:
        """Reset the parser to a ready state before a new parse."""
        self._results = ParseResults()
        self.filer.init_parse()
        self._tasks.clear()

    def parse(self, instream: BinaryIO) -> Entity:
        """
        Split a MIME stream into its component entities.

        Args:
            instream: Readable binary stream (file, BytesIO, socket file...)

        Returns:
            The root entity

        Raises:
            StructuralError: On parse errors, unless ignoring errors
        """
        self.init_parse()
        top = ParseTopLevel(stream=instream)
        self._tasks.enqueue(top)
        ran = self._tasks.drain_all(self._run_task)

        logger.debug(
            "parse_completed",
            tasks_run=ran,
            warnings=len(self._results.warnings()),
            errors=len(self._results.errors()),
        )
        return top.entity

    def parse_data(self, data: Union[bytes, str, List[Union[bytes, str]]]) -> Entity:
        """
        Parse a message that is already in memory.

        Args:
            data: The message as bytes, as str (UTF-8 encoded), or as a
                list of chunks to be concatenated

        Returns:
            The root entity
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        elif isinstance(data, list):
            data = b"".join(c.encode("utf-8") if isinstance(c, str) else c for c in data)
        elif not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"parse_data: wrong argument type: {type(data).__name__}")
        return self.parse(io.BytesIO(data))

    def parse_open(self, path: Union[str, Path]) -> Entity:
        """Parse the message in the given file."""
        with open(path, "rb") as fh:
            return self.parse(fh)

    def parse_two(self, headfile: Union[str, Path], bodyfile: Union[str, Path]) -> Entity:
        """
        Parse a message delivered as separate header and body files.

        The files are concatenated, so the header file must end with the
        blank line that separates it from the body.
        """
        return self.parse_data(Path(headfile).read_bytes() + Path(bodyfile).read_bytes())
