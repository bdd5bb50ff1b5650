"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/progress.py
Progress events for long-running operations and a tracker that keeps them in order.

Per operation the sequence is always:
    Started → Progress* → (Completed | Failed | Cancelled)
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    operation_id: str

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class Started(ProgressEvent):
    total: int
    task_type: str = ""


@dataclass(frozen=True)
class Progress(ProgressEvent):
    current: int
    total: int
    message: str = ""

    @property
    def fraction(self) -> float:
        return self.current / self.total if self.total else 0.0


@dataclass(frozen=True)
class Completed(ProgressEvent):
    message: str = ""

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed(ProgressEvent):
    error: str

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class Cancelled(ProgressEvent):

    @property
    def is_terminal(self) -> bool:
        return True


class ProgressTracker:
    """
    Emits the events of one operation and refuses to emit them out of order.

    Attributes:
        operation_id: Identifier carried by every event
        total: Number of items the operation expects to handle
    """

    def __init__(self, operation_id: str, total: int,
                 emit: Optional[Callable[[ProgressEvent], None]] = None,
                 task_type: str = ""):
        if total < 0:
            raise ValueError("Total cannot be negative")
        self.operation_id = operation_id
        self.total = total
        self.task_type = task_type
        self.current = 0
        self.message = ""
        self._emit = emit or (lambda event: None)
        self._started = False
        self._finished = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 0.0
        return min(1.0, self.current / self.total)

    @property
    def percentage(self) -> int:
        return int(self.fraction * 100)

    def start(self) -> None:
        if self._started:
            raise RuntimeError(f"Operation {self.operation_id} already started")
        self._started = True
        self._send(Started(self.operation_id, self.total, self.task_type))

    def update(self, current: int, message: str = "", total: Optional[int] = None) -> None:
        """Reports progress. total overrides the item count for sub-stages with their own scale."""
        self._require_running()
        self.current = current
        self.message = message
        self._send(Progress(self.operation_id, current, self.total if total is None else total, message))

    def increment(self, message: str = "") -> None:
        self.update(self.current + 1, message)

    def complete(self, message: str = "") -> None:
        self._finish(Completed(self.operation_id, message))

    def fail(self, error: str) -> None:
        self._finish(Failed(self.operation_id, error))

    def cancel(self) -> None:
        """Cancelled may also end an operation that never got to start."""
        if not self._started:
            self._started = True
            self._send(Started(self.operation_id, self.total, self.task_type))
        self._finish(Cancelled(self.operation_id))

    def _finish(self, event: ProgressEvent) -> None:
        self._require_running()
        self._finished = True
        self._send(event)

    def _require_running(self) -> None:
        if not self._started:
            raise RuntimeError(f"Operation {self.operation_id} has not started")
        if self._finished:
            raise RuntimeError(f"Operation {self.operation_id} already finished")

    def _send(self, event: ProgressEvent) -> None:
        logger.debug(f"{event}")
        self._emit(event)
