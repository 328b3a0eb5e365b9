"""
Deferred work for the parser.

Work that must wait until the current descent has finished (re-parsing a
decoded container, running redoers over a finished leaf) is queued as a
plain data item rather than a closure, so the queue can be inspected.
The queue is strictly FIFO: items queued while draining go to the back.
"""

from collections import deque
from dataclasses import dataclass
from typing import BinaryIO, Callable, ClassVar, Deque, List, Optional

import structlog

from ..entity.entity import Entity
from ..models.mime_type import Classification

logger = structlog.get_logger(__name__)


@dataclass
class Task:
    """Base class for queued work items."""

    name: ClassVar[str] = "task"


@dataclass
class ParseTopLevel(Task):
    """Parse a whole input stream; the resulting root entity is stored here."""

    name: ClassVar[str] = "initial processing"

    stream: BinaryIO
    entity: Optional[Entity] = None


@dataclass
class RedoLeaf(Task):
    """Offer a finished leaf entity to the installed redoers."""

    name: ClassVar[str] = "redo singlepart"

    entity: Entity


@dataclass
class ReparseContainer(Task):
    """Re-parse the decoded body of an encoded multipart or message."""

    name: ClassVar[str] = "reparse encoded container"

    entity: Entity
    classification: Classification


class TaskQueue:
    """Single-threaded FIFO of work items."""

    def __init__(self):
        self._todo: Deque[Task] = deque()

    def enqueue(self, task: Task) -> None:
        logger.debug("task_enqueued", task=task.name, pending=len(self._todo))
        self._todo.append(task)

    def dequeue(self) -> Optional[Task]:
        """Remove and return the oldest item, or None if the queue is empty."""
        return self._todo.popleft() if self._todo else None

    def drain_all(self, execute: Callable[[Task], None]) -> int:
        """
        Run every queued item in order, including items queued meanwhile.

        An item is removed before it runs; if it raises, the rest of the
        queue is left intact.

        Args:
            execute: Called once per item

        Returns:
            Number of items run
        """
        count = 0
        while self._todo:
            task = self._todo.popleft()
            execute(task)
            count += 1
        return count

    def clear(self) -> None:
        self._todo.clear()

    def pending(self) -> List[str]:
        """Names of the queued items, oldest first."""
        return [task.name for task in self._todo]

    def __len__(self) -> int:
        return len(self._todo)
