"""
Command-line interface for exploding MIME messages.

Parses each message given, writes decoded bodies to disk (or keeps them
in memory), and prints the resulting entity skeleton.

Usage:
    # Explode into the current directory
    mime-unpack message.eml

    # Explode into a directory, also extracting uuencoded attachments
    mime-unpack message.eml --output-dir out/ --uuencode

    # Only show the structure, writing nothing
    mime-unpack message.eml --to-core --show-results
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from mime_unpacker.config import NestedMessagePolicy, settings
from mime_unpacker.exceptions import StructuralError
from mime_unpacker.logging_config import message_context, setup_logging
from mime_unpacker.parsing.parser import MimeParser
from mime_unpacker.version import DECODER_VERSION, PARSER_VERSION, __version__

logger = structlog.get_logger(__name__)


# ============================================================================
# CLI FUNCTIONS
# ============================================================================

def build_parser(args: argparse.Namespace) -> MimeParser:
    """
    Create a MIME parser configured from command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        Configured MimeParser
    """
    overrides = {
        "extract_nested_messages": args.nested,
        "extract_uuencode": args.uuencode,
        "ignore_errors": not args.strict,
        "decode_headers": args.decode_headers,
        "output_to_core": args.to_core,
    }
    if args.output_dir:
        Path(args.output_dir).mkdir(parents=True, exist_ok=True)
        overrides["output_dir"] = args.output_dir
    return MimeParser(**overrides)


def unpack_file(parser: MimeParser, path: Path, show_results: bool = False) -> bool:
    """
    Parse one message file and print its skeleton.

    Args:
        parser: Parser to use
        path: Message file
        show_results: Also print every parse diagnostic

    Returns:
        True if the message was parsed without fatal errors
    """
    with message_context(str(path)):
        return _unpack(parser, path, show_results)


def _unpack(parser: MimeParser, path: Path, show_results: bool) -> bool:
    logger.info("unpacking_file", path=str(path))
    try:
        entity = parser.parse_open(path)
    except StructuralError as e:
        logger.error("unpack_failed", path=str(path), error=str(e))
        print(f"Error: {path}: {e}", file=sys.stderr)
        if parser.last_head is not None:
            subject = parser.last_head.get("Subject")
            if subject:
                print(f"  (message subject was: {subject.strip()})", file=sys.stderr)
        return False

    print(f"Message: {path}")
    print(entity.dump_skeleton())
    if show_results:
        print(str(parser.results))

    logger.info(
        "unpack_completed",
        path=str(path),
        parts=sum(1 for _ in entity.walk()),
        warnings=len(parser.results.warnings()),
        errors=len(parser.results.errors()),
    )
    return True


# ============================================================================
# MAIN CLI
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="mime-unpack",
        description="Explode MIME messages into their component parts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Explode into the current directory
  %(prog)s message.eml

  # Explode several messages into out/
  %(prog)s a.eml b.eml --output-dir out/

  # Keep nested messages in place of their containers
  %(prog)s digest.eml --nested REPLACE
        """,
    )

    parser.add_argument("files", nargs="+", help="Message files to unpack")

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--output-dir",
        "-o",
        type=str,
        default=None,
        help=f"Directory for decoded bodies (default: {settings.output_dir})",
    )
    output.add_argument(
        "--to-core",
        action="store_true",
        help="Keep decoded bodies in memory; write no files",
    )

    parser.add_argument(
        "--nested",
        type=str.upper,
        choices=[p.value for p in NestedMessagePolicy],
        default=settings.extract_nested_messages.value,
        help="How to handle message/rfc822 parts (default: %(default)s)",
    )
    parser.add_argument(
        "--uuencode",
        "-u",
        action="store_true",
        help="Extract uuencoded attachments from plain-text parts",
    )
    parser.add_argument(
        "--decode-headers",
        action="store_true",
        help="Decode RFC 2047 encoded words in headers",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Stop at the first structural error instead of recovering",
    )
    parser.add_argument(
        "--show-results",
        "-r",
        action="store_true",
        help="Print parse diagnostics after each skeleton",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help=f"Log level (default: {settings.log_level})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__} ({PARSER_VERSION}, {DECODER_VERSION})",
    )

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    mime_parser = build_parser(args)

    failures = 0
    for name in args.files:
        path = Path(name)
        if not path.is_file():
            print(f"Error: File not found: {path}", file=sys.stderr)
            failures += 1
            continue
        if not unpack_file(mime_parser, path, show_results=args.show_results):
            failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
