"""
Version constants for the MIME unpacker.
"""

__version__ = "1.0.0"

# Component versions (update these when implementations change)
PARSER_VERSION = "mime-parser-1.0.0"
DECODER_VERSION = "mime-decoder-1.0.0"
