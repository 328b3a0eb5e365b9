"""
CLI module for MIME unpacking.

Provides the ``mime-unpack`` command for exploding messages into files.
"""

from mime_unpacker.cli.unpack import main as unpack_main

__all__ = ["unpack_main"]
