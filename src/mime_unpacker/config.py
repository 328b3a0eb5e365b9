"""
Parser configuration management.

This module handles configuration from environment variables using Pydantic Settings.
"""

from enum import Enum
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings


class NestedMessagePolicy(str, Enum):
    """How embedded message/rfc822 parts are handled."""

    NEST = "NEST"  # nested message becomes the sole part of its container
    REPLACE = "REPLACE"  # nested message takes the container's place
    OFF = "OFF"  # treat the container as an ordinary singlepart


class Settings(BaseSettings):
    """
    Parser configuration from environment variables.

    All settings can be overridden via environment variables prefixed
    with ``MIME_UNPACKER_`` (e.g. ``MIME_UNPACKER_IGNORE_ERRORS=false``).
    """

    # Parsing behaviour
    decode_headers: bool = False
    extract_nested_messages: NestedMessagePolicy = NestedMessagePolicy.NEST
    extract_encoded_containers: bool = True
    ignore_errors: bool = True

    # Redoers
    extract_uuencode: bool = False
    uu_horizon: int = 24  # negative means no limit

    # Output
    output_to_core: bool = False
    output_dir: str = "."
    output_prefix: str = "msg"

    # Temporary storage
    tmp_to_core: bool = False
    tmp_recycling: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "env_prefix": "MIME_UNPACKER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("extract_nested_messages", mode="before")
    @classmethod
    def coerce_nested_policy(cls, v: Any) -> Any:
        """Accept booleans and lowercase names for the nesting policy."""
        if isinstance(v, bool):
            return NestedMessagePolicy.NEST if v else NestedMessagePolicy.OFF
        if isinstance(v, str):
            v = v.strip().upper()
            if v in ("1", "TRUE", "YES"):
                return NestedMessagePolicy.NEST
            if v in ("0", "FALSE", "NO", ""):
                return NestedMessagePolicy.OFF
        return v


# Global settings instance
settings = Settings()
