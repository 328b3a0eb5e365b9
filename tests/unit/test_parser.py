"""
Unit tests for the MIME parser (parser.py).

Tests cover:
- Single parts and multiparts (children, preamble, epilogue)
- Nested messages under each nesting policy
- Encoded containers, with and without re-extraction
- Recovery from unsupported encodings and broken structure
- Strict mode and the last parsed header
- Entry points (bytes, files, separate head and body)
"""

import base64
import io

import pytest

from mime_unpacker.config import NestedMessagePolicy
from mime_unpacker.entity import Entity, FileBody, Header
from mime_unpacker.exceptions import StructuralError
from mime_unpacker.parsing import UNPARSEABLE_MULTIPART, MimeParser, Reader
from mime_unpacker.redo import Redoer
from tests.fixtures.messages import (
    BAD_HEADER,
    BASE64_MULTIPART,
    DIGEST,
    EMPTY_MULTIPART,
    ENCODED_SUBJECT,
    INNER_MESSAGE,
    MAILBOX_FROM,
    MESSAGE_RFC822,
    MISSING_BOUNDARY,
    MULTIPART_BODY,
    MULTIPART_MIXED,
    NESTED_MULTIPART,
    NO_PARTS,
    POP3_OK,
    QUOTED_PRINTABLE,
    SIMPLE_PLAIN_TEXT,
    TRUNCATED_MULTIPART,
    UNSUPPORTED_ENCODING,
    UUENCODED_TEXT,
)


def bodies(ent: Entity):
    return [p.body.as_bytes() if p.body is not None else None for p in ent.parts]


class TestSinglepart:
    """Tests for single-part messages."""

    @pytest.mark.unit
    def test_plain_text(self, parser, simple_bytes):
        """Test parsing a plain text message."""
        ent = parser.parse_data(simple_bytes)

        assert ent.mime_type == "text/plain"
        assert ent.header.get("Subject") == "Test Message"
        assert ent.parts == []
        assert ent.body.as_bytes() == b"Hello, this is a simple test message.\n"
        assert parser.results.errors() == []

    @pytest.mark.unit
    def test_quoted_printable_decoded(self, parser):
        """Test that the body is stored decoded."""
        ent = parser.parse_data(QUOTED_PRINTABLE)
        assert ent.body.as_bytes() == b"caf\xe9 au lait, soft break\n"

    @pytest.mark.unit
    def test_unsupported_encoding(self, parser):
        """Test that unknown encodings fall back to binary with a warning."""
        ent = parser.parse_data(UNSUPPORTED_ENCODING)

        assert ent.body.as_bytes() == b"some opaque data\n"
        assert ent.effective_type == "application/octet-stream"
        assert ent.mime_type == "text/plain"
        assert any("Unsupported encoding 'x-strange'" in w for w in parser.results.warnings())
        assert parser.results.errors() == []

    @pytest.mark.unit
    def test_unsupported_encoding_not_fatal_in_strict_mode(self, strict_parser):
        """Test that an unsupported encoding is only a warning."""
        ent = strict_parser.parse_data(UNSUPPORTED_ENCODING)
        assert ent.effective_type == "application/octet-stream"

    @pytest.mark.unit
    def test_crlf_message(self, parser):
        """Test that CRLF line endings are handled."""
        data = SIMPLE_PLAIN_TEXT.replace(b"\n", b"\r\n")
        ent = parser.parse_data(data)
        assert ent.header.get("Subject") == "Test Message"
        assert ent.body.as_bytes() == b"Hello, this is a simple test message.\r\n"


class TestMultipart:
    """Tests for multipart bodies."""

    @pytest.mark.unit
    def test_children_in_order(self, parser, multipart_bytes):
        """Test that every section becomes a child, in order."""
        ent = parser.parse_data(multipart_bytes)

        assert ent.mime_type == "multipart/mixed"
        assert ent.body is None
        assert [p.mime_type for p in ent.parts] == [
            "text/plain",
            "text/html",
            "application/octet-stream",
        ]
        assert bodies(ent) == [b"first part", b"<p>second part</p>", b"\x00\x01\x02\x03\x04"]
        assert ent.parts[2].header.recommended_filename == "data.bin"

    @pytest.mark.unit
    def test_preamble_and_epilogue(self, parser, multipart_bytes):
        """Test that preamble and epilogue are preserved."""
        ent = parser.parse_data(multipart_bytes)
        assert ent.preamble == [b"This is the preamble.\n"]
        assert ent.epilogue == [b"This is the epilogue.\n"]

    @pytest.mark.unit
    @pytest.mark.parametrize("count", [1, 2, 5])
    def test_child_count(self, parser, count):
        """Test that N sections give exactly N children."""
        sections = b"".join(
            b"--B\nContent-Type: text/plain\n\npart %d\n" % i for i in range(count)
        )
        data = b'Content-Type: multipart/mixed; boundary="B"\n\n' + sections + b"--B--\n"

        ent = parser.parse_data(data)

        assert bodies(ent) == [b"part %d" % i for i in range(count)]

    @pytest.mark.unit
    def test_nested_multipart(self, parser):
        """Test a multipart/alternative inside a multipart/mixed."""
        ent = parser.parse_data(NESTED_MULTIPART)

        assert len(ent.parts) == 2
        alternative, trailer = ent.parts
        assert alternative.mime_type == "multipart/alternative"
        assert bodies(alternative) == [b"plain version", b"<b>html version</b>"]
        assert trailer.body.as_bytes() == b"after the alternative"
        assert parser.results.errors() == []

    @pytest.mark.unit
    def test_empty_multipart(self, parser):
        """Test that a multipart without parts is only a warning."""
        ent = parser.parse_data(EMPTY_MULTIPART)
        assert ent.parts == []
        assert "empty multipart message" in parser.results.warnings()
        assert parser.results.errors() == []

    @pytest.mark.unit
    def test_missing_boundary_degrades(self, parser):
        """Test that a multipart without boundary becomes an opaque leaf."""
        ent = parser.parse_data(MISSING_BOUNDARY)

        assert ent.effective_type == UNPARSEABLE_MULTIPART
        assert ent.parts == []
        assert ent.body.as_bytes() == b"just some text\n"
        assert len(parser.results.errors()) == 1
        assert "boundary" in parser.last_error

    @pytest.mark.unit
    def test_boundary_with_line_break(self, parser):
        """Test that a boundary containing CR is rejected."""
        ent = Entity(header=Header.from_fields([("Content-Type", 'multipart/mixed; boundary="a\rb"')]))
        parser.process_multipart(io.BytesIO(b"--a\n"), Reader(), ent)
        assert ent.effective_type == UNPARSEABLE_MULTIPART
        assert ent.body.as_bytes() == b"--a\n"

    @pytest.mark.unit
    def test_boundary_never_found(self, parser):
        """Test that a preamble running to the end is an error."""
        ent = parser.parse_data(NO_PARTS)
        assert ent.parts == []
        assert "unexpected end of preamble" in parser.results.errors()

    @pytest.mark.unit
    def test_truncated_multipart(self, parser):
        """Test that a part cut off by end of input is reported."""
        ent = parser.parse_data(TRUNCATED_MULTIPART)

        assert len(ent.parts) == 1
        assert ent.parts[0].body.as_bytes() == b"this part never ends\n"
        errors = parser.results.errors()
        assert "part did not end with expected boundary" in errors
        assert "unexpected end of parts before epilogue" in errors

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "sections,expected",
        [
            (b"--X\n--X\nContent-Type: text/plain\n\nsecond\n--X--\n", [b"", b"second"]),
            (b"--X\nContent-Type: text/plain\n\nfirst\n--X\n--X--\n", [b"first", b""]),
        ],
    )
    def test_empty_body_part(self, parser, strict_parser, sections, expected):
        """Test that a part with no header and no body is kept as an empty child."""
        data = b'Content-Type: multipart/mixed; boundary="X"\n\n' + sections

        ent = parser.parse_data(data)

        assert bodies(ent) == expected
        assert [p.mime_type for p in ent.parts] == ["text/plain", "text/plain"]
        assert "empty body part" in parser.results.warnings()
        assert parser.results.errors() == []
        assert bodies(strict_parser.parse_data(data)) == expected

    @pytest.mark.unit
    def test_header_runs_into_boundary(self, parser):
        """Test that a header cut off by a boundary does not swallow the next part."""
        data = (
            b'Content-Type: multipart/mixed; boundary="X"\n\n'
            b"--X\nContent-Type: text/html\n"
            b"--X\nContent-Type: text/plain\n\nsecond\n"
            b"--X--\n"
        )

        ent = parser.parse_data(data)

        assert [p.mime_type for p in ent.parts] == ["text/html", "text/plain"]
        assert bodies(ent) == [b"", b"second"]
        assert parser.results.errors() == ["unexpected end of header"]

    @pytest.mark.unit
    def test_digest_parts_are_messages(self, parser):
        """Test that digest parts default to message/rfc822."""
        ent = parser.parse_data(DIGEST)

        assert [p.mime_type for p in ent.parts] == ["message/rfc822", "message/rfc822"]
        first = ent.parts[0]
        assert first.body is None
        assert len(first.parts) == 1
        assert first.parts[0].header.get("Subject") == "First"
        assert first.parts[0].body.as_bytes() == b"first body"


class TestNestedMessages:
    """Tests for message/rfc822 handling."""

    @pytest.mark.unit
    def test_nest(self, parser):
        """Test that NEST keeps the container with the message as its only part."""
        ent = parser.parse_data(MESSAGE_RFC822)

        assert ent.mime_type == "message/rfc822"
        assert ent.body is None
        assert len(ent.parts) == 1
        inner = ent.parts[0]
        assert inner.header.get("Subject") == "Inner message"
        assert inner.body.as_bytes() == b"This is the forwarded message.\n"

    @pytest.mark.unit
    def test_replace(self, mock_settings):
        """Test that REPLACE makes the container indistinguishable from the message."""
        parser = MimeParser(mock_settings, extract_nested_messages=NestedMessagePolicy.REPLACE)
        ent = parser.parse_data(MESSAGE_RFC822)
        direct = MimeParser(mock_settings).parse_data(INNER_MESSAGE)

        assert ent.header.items() == direct.header.items()
        assert ent.mime_type == direct.mime_type
        assert ent.parts == []
        assert ent.body.as_bytes() == direct.body.as_bytes()

    @pytest.mark.unit
    def test_off(self, mock_settings):
        """Test that OFF keeps the message as an opaque leaf."""
        parser = MimeParser(mock_settings, extract_nested_messages=False)
        ent = parser.parse_data(MESSAGE_RFC822)

        assert ent.parts == []
        assert ent.body.as_bytes() == INNER_MESSAGE

    @pytest.mark.unit
    def test_nested_message_inside_multipart(self, parser):
        """Test a forwarded message attached to a multipart."""
        data = (
            b'Content-Type: multipart/mixed; boundary="B"\n\n'
            b"--B\nContent-Type: text/plain\n\nsee below\n"
            b"--B\nContent-Type: message/rfc822\n\n" + INNER_MESSAGE + b"--B--\n"
        )
        ent = parser.parse_data(data)

        assert [p.mime_type for p in ent.parts] == ["text/plain", "message/rfc822"]
        inner = ent.parts[1].parts[0]
        assert inner.header.get("Subject") == "Inner message"
        assert inner.body.as_bytes() == b"This is the forwarded message."


class TestEncodedContainers:
    """Tests for transfer-encoded multiparts and messages."""

    @pytest.mark.unit
    def test_base64_multipart_reparsed(self, parser, mock_settings):
        """Test that a base64 multipart parses like its decoded form."""
        ent = parser.parse_data(BASE64_MULTIPART)
        direct = MimeParser(mock_settings).parse_data(MULTIPART_MIXED)

        assert ent.body is None
        assert [p.mime_type for p in ent.parts] == [p.mime_type for p in direct.parts]
        assert bodies(ent) == bodies(direct)
        assert ent.preamble == direct.preamble
        assert ent.epilogue == direct.epilogue

    @pytest.mark.unit
    def test_base64_multipart_kept_opaque(self, mock_settings):
        """Test that without re-extraction the decoded container is the body."""
        parser = MimeParser(mock_settings, extract_encoded_containers=False)
        ent = parser.parse_data(BASE64_MULTIPART)

        assert ent.mime_type == "multipart/mixed"
        assert ent.parts == []
        assert ent.body.as_bytes() == MULTIPART_BODY

    @pytest.mark.unit
    def test_quoted_printable_message(self, parser):
        """Test that an encoded message/rfc822 is nested after decoding."""
        data = (
            b"Content-Type: message/rfc822\n"
            b"Content-Transfer-Encoding: quoted-printable\n\n"
            b"Subject: caf=C3=A9\n\nsoft=\n break\n"
        )
        ent = parser.parse_data(data)

        assert ent.body is None
        assert len(ent.parts) == 1
        assert ent.parts[0].body.as_bytes() == b"soft break\n"

    @pytest.mark.unit
    def test_base64_message_replaced(self, mock_settings):
        """Test that REPLACE on an encoded message gives the inner message itself."""
        data = (
            b"Content-Type: message/rfc822\n"
            b"Content-Transfer-Encoding: base64\n\n" + base64.encodebytes(INNER_MESSAGE)
        )
        parser = MimeParser(mock_settings, extract_nested_messages=NestedMessagePolicy.REPLACE)

        ent = parser.parse_data(data)
        direct = MimeParser(mock_settings).parse_data(INNER_MESSAGE)

        assert ent.header.items() == direct.header.items()
        assert ent.parts == []
        assert ent.body.as_bytes() == direct.body.as_bytes()

    @pytest.mark.unit
    def test_sibling_containers_reparsed_in_order(self, parser):
        """Test that deferred work for sibling containers runs first in, first out."""
        seen = []

        class Recorder(Redoer):
            def redo(self, instream, entity, parser):
                seen.append(instream.read())
                return None

        inner = [b"--IN%d\nContent-Type: text/plain\n\npart %d\n--IN%d--\n" % (i, i, i) for i in (1, 2)]
        data = b'Content-Type: multipart/mixed; boundary="OUT"\n\n'
        for i, body in enumerate(inner, start=1):
            data += (
                b'--OUT\nContent-Type: multipart/mixed; boundary="IN%d"\n'
                b"Content-Transfer-Encoding: base64\n\n" % i
            ) + base64.encodebytes(body)
        data += b"--OUT--\n"
        parser.redoer("recorder", Recorder())

        ent = parser.parse_data(data)

        for i, container in enumerate(ent.parts, start=1):
            assert container.body is None
            assert bodies(container) == [b"part %d" % i]
        assert seen == inner + [b"part 1", b"part 2"]

    @pytest.mark.unit
    def test_encoded_container_without_boundary(self, parser):
        """Test that a decoded container with no boundary keeps its body."""
        data = (
            b"Content-Type: multipart/mixed\n"
            b"Content-Transfer-Encoding: base64\n\n"
            b"aGVsbG8K\n"
        )
        ent = parser.parse_data(data)

        assert ent.effective_type == UNPARSEABLE_MULTIPART
        assert ent.body.as_bytes() == b"hello\n"


class TestHeaders:
    """Tests for header handling during parsing."""

    @pytest.mark.unit
    @pytest.mark.parametrize("data", [MAILBOX_FROM, POP3_OK])
    def test_envelope_lines_skipped(self, parser, data):
        """Test that mailbox and POP3 lines are skipped with a warning."""
        ent = parser.parse_data(data)

        assert ent.header.get("Subject").startswith("From a")
        assert len(parser.results.warnings()) == 1
        assert parser.results.errors() == []

    @pytest.mark.unit
    def test_bad_header_line(self, parser):
        """Test that unparseable header lines are reported."""
        ent = parser.parse_data(BAD_HEADER)

        assert ent.header.get("Subject") == "Broken"
        assert any(e.startswith("couldn't parse head") for e in parser.results.errors())

    @pytest.mark.unit
    def test_unterminated_header(self, parser):
        """Test that a header running to end of input is an error."""
        parser.parse_data(b"Subject: no body\n")
        assert "unexpected end of header" in parser.results.errors()

    @pytest.mark.unit
    def test_decode_headers(self, mock_settings):
        """Test optional RFC 2047 decoding."""
        assert MimeParser(mock_settings).parse_data(ENCODED_SUBJECT).header.get("Subject").startswith("=?utf-8?")
        decoding = MimeParser(mock_settings, decode_headers=True)
        assert decoding.parse_data(ENCODED_SUBJECT).header.get("Subject") == "café"


class TestStrictMode:
    """Tests for parsing with ignore_errors disabled."""

    @pytest.mark.unit
    def test_structural_error_raised(self, strict_parser):
        """Test that structural errors abort the parse."""
        with pytest.raises(StructuralError, match="boundary"):
            strict_parser.parse_data(MISSING_BOUNDARY)

    @pytest.mark.unit
    def test_last_head_kept(self, strict_parser):
        """Test that the top-level header survives a failed parse."""
        with pytest.raises(StructuralError):
            strict_parser.parse_data(TRUNCATED_MULTIPART)
        assert strict_parser.last_head.get("Subject") == "Truncated"

    @pytest.mark.unit
    def test_clean_message_parses(self, strict_parser, multipart_bytes):
        """Test that well-formed input is unaffected."""
        assert len(strict_parser.parse_data(multipart_bytes).parts) == 3


class TestParserState:
    """Tests for results and parser reuse."""

    @pytest.mark.unit
    def test_results_reset_between_parses(self, parser):
        """Test that each parse starts with fresh results."""
        parser.parse_data(NO_PARTS)
        assert parser.last_error

        parser.parse_data(SIMPLE_PLAIN_TEXT)
        assert parser.last_error == ""
        assert parser.last_head.get("Subject") == "Test Message"

    @pytest.mark.unit
    def test_messages_record_depth(self, parser):
        """Test that diagnostics from nested parts are deeper."""
        parser.parse_data(NESTED_MULTIPART)
        depths = {m.depth for m in parser.results.messages}
        assert max(depths) > 2

    @pytest.mark.unit
    def test_settings_are_per_parser(self, mock_settings):
        """Test that overrides do not leak into the base settings."""
        MimeParser(mock_settings, ignore_errors=False)
        assert mock_settings.ignore_errors is True

    @pytest.mark.unit
    def test_tmpfile_recycling(self, parser):
        """Test that a recycled temporary file is rewound and emptied."""
        fh = parser.new_tmpfile()
        fh.write(b"old data")
        assert parser.new_tmpfile(fh) is fh
        assert fh.tell() == 0
        assert fh.read() == b""

    @pytest.mark.unit
    def test_without_tmp_recycling(self, mock_settings, multipart_bytes):
        """Test parsing with fresh temporary files for every part."""
        parser = MimeParser(mock_settings, tmp_recycling=False, tmp_to_core=False)
        ent = parser.parse_data(multipart_bytes)
        assert bodies(ent)[0] == b"first part"


class TestEntryPoints:
    """Tests for the parse_* entry points."""

    @pytest.mark.unit
    def test_parse_stream(self, parser, multipart_bytes):
        """Test parsing from a binary stream."""
        assert len(parser.parse(io.BytesIO(multipart_bytes)).parts) == 3

    @pytest.mark.unit
    def test_parse_data_variants(self, parser, simple_bytes):
        """Test that str and list input parse like bytes."""
        lines = simple_bytes.splitlines(keepends=True)
        for data in (simple_bytes.decode("ascii"), lines, [line.decode("ascii") for line in lines]):
            assert parser.parse_data(data).header.get("Subject") == "Test Message"

    @pytest.mark.unit
    def test_parse_data_wrong_type(self, parser):
        """Test that unsupported input types are rejected."""
        with pytest.raises(TypeError):
            parser.parse_data(42)

    @pytest.mark.unit
    def test_parse_open(self, parser, tmp_message_file):
        """Test parsing a message file."""
        assert parser.parse_open(tmp_message_file).header.get("Subject") == "Three parts"

    @pytest.mark.unit
    def test_parse_open_missing(self, parser):
        """Test handling of a missing file."""
        with pytest.raises(FileNotFoundError):
            parser.parse_open("/nonexistent/path/message.eml")

    @pytest.mark.unit
    def test_parse_two(self, parser, tmp_path):
        """Test parsing a message split into head and body files."""
        head, body = MULTIPART_MIXED.split(b"\n\n", 1)
        (tmp_path / "head").write_bytes(head + b"\n\n")
        (tmp_path / "body").write_bytes(body)

        ent = parser.parse_two(tmp_path / "head", tmp_path / "body")

        assert len(ent.parts) == 3


class TestOutputToDisk:
    """Tests for bodies written through the filer."""

    @pytest.mark.unit
    def test_bodies_written_to_files(self, disk_parser, multipart_bytes, tmp_path):
        """Test that decoded bodies land in the output directory."""
        ent = disk_parser.parse_data(multipart_bytes)

        paths = [p.body.path for p in ent.parts]
        assert all(isinstance(p.body, FileBody) for p in ent.parts)
        assert all(path.parent == tmp_path / "out" for path in paths)
        assert (tmp_path / "out" / "data.bin").read_bytes() == b"\x00\x01\x02\x03\x04"
        assert "Body-file: " + str(paths[0]) in ent.dump_skeleton()

    @pytest.mark.unit
    def test_purge(self, disk_parser, multipart_bytes):
        """Test that purging removes every written file."""
        ent = disk_parser.parse_data(multipart_bytes)
        written = disk_parser.filer.purgeable
        assert len(written) == 3

        ent.purge()
        assert not any(path.exists() for path in written)

    @pytest.mark.unit
    def test_reparsed_container_file_removed(self, disk_parser):
        """Test that the decoded copy of a re-parsed container leaves no file behind."""
        ent = disk_parser.parse_data(BASE64_MULTIPART)

        assert ent.body is None
        written = disk_parser.filer.purgeable
        assert len(written) == 4
        assert sorted(path for path in written if path.exists()) == sorted(
            p.body.path for p in ent.parts
        )

    @pytest.mark.unit
    def test_redone_leaf_file_removed(self, disk_parser):
        """Test that a leaf replaced by a redoer leaves no file behind."""
        disk_parser.extract_uuencode(True)

        ent = disk_parser.parse_data(UUENCODED_TEXT)

        assert ent.mime_type == "multipart/mixed"
        written = disk_parser.filer.purgeable
        assert sorted(path for path in written if path.exists()) == sorted(
            p.body.path for p in ent.parts
        )
