"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- Parsers in tolerant, strict and on-disk configurations
- Mock settings/configuration
- Sample message data
- Temporary files
"""

import os
from typing import Generator

import pytest

from mime_unpacker.config import Settings
from mime_unpacker.parsing.parser import MimeParser
from .fixtures.messages import SAMPLE_MESSAGES


@pytest.fixture
def mock_settings() -> Settings:
    """
    Create mock settings for testing with safe defaults.

    Returns:
        Settings instance that keeps everything in memory
    """
    return Settings(
        output_to_core=True,
        tmp_to_core=True,
        log_level="INFO",
        log_json=False,  # Easier to read in tests
    )


@pytest.fixture
def parser(mock_settings) -> MimeParser:
    """
    Tolerant parser that keeps all bodies in memory.

    Returns:
        MimeParser instance
    """
    return MimeParser(mock_settings)


@pytest.fixture
def strict_parser(mock_settings) -> MimeParser:
    """
    Parser that raises on the first structural error.

    Returns:
        MimeParser instance with ignore_errors disabled
    """
    return MimeParser(mock_settings, ignore_errors=False)


@pytest.fixture
def disk_parser(tmp_path) -> MimeParser:
    """
    Parser that writes decoded bodies under a temporary directory.

    Args:
        tmp_path: pytest's temporary directory fixture

    Returns:
        MimeParser instance writing into tmp_path / "out"
    """
    return MimeParser(output_dir=str(tmp_path / "out"), output_to_core=False)


@pytest.fixture
def multipart_bytes() -> bytes:
    """
    Get the standard three-part multipart/mixed message.

    Returns:
        bytes of a multipart message with preamble and epilogue
    """
    return SAMPLE_MESSAGES["multipart_mixed"]


@pytest.fixture
def simple_bytes() -> bytes:
    """
    Get simple plain text message bytes for basic tests.

    Returns:
        bytes of a single-part text message
    """
    return SAMPLE_MESSAGES["simple_plain_text"]


@pytest.fixture
def tmp_message_file(tmp_path) -> Generator[str, None, None]:
    """
    Create temporary message file for file-based tests.

    Args:
        tmp_path: pytest's temporary directory fixture

    Yields:
        Path to temporary .eml file
    """
    path = tmp_path / "message.eml"
    path.write_bytes(SAMPLE_MESSAGES["multipart_mixed"])
    yield str(path)


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    This prevents test pollution from env var changes.
    """
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


def pytest_configure(config):
    """
    Configure pytest with custom markers and settings.
    """
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: End-to-end tests through the public entry points"
    )
