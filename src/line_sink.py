"""Consumer side of the tail watcher: where reloaded lines end up."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import List, Optional


class LineSink(ABC):
    """
    Receives lines from a :class:`log_watcher.TailWatcher`.

    The watcher asks the sink how many lines it already holds to decide how
    many lines of the file to skip on an incremental reload, so
    :meth:`line_count` must reflect every prior :meth:`append` immediately.
    :meth:`batch_complete` is called exactly once at the end of every reload.
    """

    @abstractmethod
    def append(self, line: str) -> None:
        """Append one line, in file order."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every line appended so far."""

    @abstractmethod
    def line_count(self) -> int:
        """Return the number of lines currently held."""

    @abstractmethod
    def batch_complete(self) -> None:
        """Signal that the current reload has delivered all of its lines."""


class NullSink(LineSink):
    """Ignores everything. Used when no consumer is attached."""

    def append(self, line: str) -> None:
        pass

    def clear(self) -> None:
        pass

    def line_count(self) -> int:
        return 0

    def batch_complete(self) -> None:
        pass


class MemorySink(LineSink):
    """Thread-safe list of lines, shared between the poll thread and readers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lines: List[str] = []
        self._batches = 0

    def append(self, line: str) -> None:
        with self._lock:
            self._lines.append(line)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def line_count(self) -> int:
        with self._lock:
            return len(self._lines)

    def batch_complete(self) -> None:
        with self._lock:
            self._batches += 1

    @property
    def batches(self) -> int:
        """Number of reloads completed since the sink was created."""

        with self._lock:
            return self._batches

    def lines(self, offset: int = 0, limit: Optional[int] = None) -> List[str]:
        """Return a copy of ``limit`` lines starting at ``offset``."""

        with self._lock:
            if limit is None:
                return self._lines[offset:]
            return self._lines[offset:offset + limit]
