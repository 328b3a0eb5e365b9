"""
Output policy for decoded bodies written to disk.

A filer decides where each leaf's decoded data goes, keeps track of what
it wrote during the current parse, and can purge it all afterwards.
"""

import mimetypes
import os
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

import structlog

from ..entity.body import FileBody
from ..entity.header import Header

logger = structlog.get_logger(__name__)

# Longest recommended filename we are willing to use as-is
MAX_FILENAME_LENGTH = 80

_EVIL_CHARS = re.compile(r"[/\\\x00-\x1f\x7f]")


class Filer(ABC):
    """
    Base class for output policies.

    Args:
        prefix: Prefix for generated filenames
    """

    def __init__(self, prefix: str = "msg"):
        self.output_prefix = prefix
        self._purgeable: List[Path] = []
        self._counter = 0

    def init_parse(self) -> None:
        """Called at the start of every parse."""
        self._purgeable = []

    @abstractmethod
    def output_dir(self, header: Header) -> Path:
        """Directory that a body with this header should be written to."""

    def evil_filename(self, name: Optional[str]) -> bool:
        """
        Decide whether a recommended filename is unsafe to use.

        Args:
            name: Candidate filename

        Returns:
            True if the name must not be used
        """
        if not name or name != name.strip():
            return True
        if name.startswith("."):
            return True
        if _EVIL_CHARS.search(name):
            return True
        return len(name) > MAX_FILENAME_LENGTH

    def output_filename(self, header: Header) -> str:
        """Recommended filename if safe, else a generated one."""
        recommended = header.recommended_filename
        if recommended and not self.evil_filename(recommended):
            return recommended
        if recommended:
            logger.warning("evil_filename_rejected", filename=recommended)

        self._counter += 1
        ext = mimetypes.guess_extension(header.mime_type) or ".dat"
        return f"{self.output_prefix}-{os.getpid()}-{self._counter}{ext}"

    def output_path(self, header: Header) -> Path:
        """
        Full path for a new body; existing files are never reused.

        Args:
            header: Header of the part being written

        Returns:
            Path that does not exist yet
        """
        directory = self.output_dir(header)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.output_filename(header)
        stem, suffix = path.stem, path.suffix
        n = 0
        while path.exists() or path in self._purgeable:
            n += 1
            path = directory / f"{stem}-{n}{suffix}"
        return path

    def new_body_for(self, header: Header) -> FileBody:
        """Create a file body for a part and remember it for purging."""
        path = self.output_path(header)
        logger.debug("body_output_path", path=str(path))
        self._purgeable.append(path)
        return FileBody(path)

    @property
    def purgeable(self) -> List[Path]:
        """Files written during the current parse."""
        return list(self._purgeable)

    def purge(self) -> None:
        """Remove every file written during the current parse."""
        for path in self._purgeable:
            path.unlink(missing_ok=True)
        self._purgeable = []


class FileInto(Filer):
    """Write every body into one directory."""

    def __init__(self, directory: Union[str, Path] = ".", prefix: str = "msg"):
        super().__init__(prefix=prefix)
        self.directory = Path(directory)

    def output_dir(self, header: Header) -> Path:
        return self.directory


class FileUnder(Filer):
    """
    Write each parsed message into its own fresh subdirectory of ``basedir``.

    Args:
        basedir: Parent directory
        dirname: Fixed subdirectory name (a unique one per parse if None)
        purge: Empty a fixed subdirectory at the start of every parse
        prefix: Prefix for generated filenames
    """

    def __init__(
        self,
        basedir: Union[str, Path],
        dirname: Optional[str] = None,
        purge: bool = False,
        prefix: str = "msg",
    ):
        super().__init__(prefix=prefix)
        self.basedir = Path(basedir)
        self.dirname = dirname
        self.purge_dir = purge
        self._subdir: Optional[Path] = None
        self._parses = 0

    def init_parse(self) -> None:
        super().init_parse()
        self._parses += 1
        if self.dirname:
            self._subdir = self.basedir / self.dirname
            if self.purge_dir and self._subdir.is_dir():
                for child in self._subdir.iterdir():
                    if child.is_file():
                        child.unlink()
        else:
            name = f"msg-{int(time.time())}-{os.getpid()}-{self._parses}"
            self._subdir = self.basedir / name
            n = 0
            while self._subdir.exists():
                n += 1
                self._subdir = self.basedir / f"{name}-{n}"
        logger.debug("output_subdirectory", path=str(self._subdir))

    def output_dir(self, header: Header) -> Path:
        if self._subdir is None:
            self.init_parse()
        return self._subdir
