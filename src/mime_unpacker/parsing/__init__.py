# MIME parsing engine

from .filer import FileInto, FileUnder, Filer
from .parser import MimeParser, UNPARSEABLE_MULTIPART
from .reader import EOS, Reader
from .tasks import ParseTopLevel, RedoLeaf, ReparseContainer, Task, TaskQueue

__all__ = [
    "MimeParser",
    "UNPARSEABLE_MULTIPART",
    "Reader",
    "EOS",
    "Filer",
    "FileInto",
    "FileUnder",
    "Task",
    "TaskQueue",
    "ParseTopLevel",
    "RedoLeaf",
    "ReparseContainer",
]
