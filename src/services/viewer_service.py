"""Service owning the single log file shown by a viewer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from errors import NotFoundError
from line_sink import MemorySink
from log_watcher import DEFAULT_POLL_INTERVAL, TailWatcher
from models import NO_LOG_FILE, ChangeEvent, WatcherState

logger = logging.getLogger(__name__)


@dataclass
class ViewerStatus:
    """Point-in-time view of the slot, safe to hand to other threads."""

    path: Optional[Path]
    file_name: str
    state: WatcherState
    line_count: int
    batches: int
    poll_interval: float
    last_change: Optional[ChangeEvent] = None
    last_changed_at: Optional[datetime] = None
    last_error: Optional[str] = None


class ViewerService:
    """
    Holds at most one :class:`TailWatcher` and the sink it feeds.

    Attaching a new file always stops the previous watcher first and joins
    its thread, so two loops can never feed the same sink.
    """

    def __init__(
        self,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        watcher_factory: Optional[Callable[[MemorySink, float], TailWatcher]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._poll_interval = poll_interval
        self._watcher_factory = watcher_factory or self._default_watcher_factory
        self._sink = MemorySink()
        self._watcher: Optional[TailWatcher] = None
        self._last_change: Optional[ChangeEvent] = None
        self._last_changed_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

        logger.debug("ViewerService initialised with poll interval %.2fs", poll_interval)

    # Public API -----------------------------------------------------------------
    @property
    def sink(self) -> MemorySink:
        return self._sink

    def attach(self, path: Union[str, Path]) -> ViewerStatus:
        """Show ``path``; the previous file, if any, is detached first."""

        with self._lock:
            self._detach_locked()
            watcher = self._watcher_factory(self._sink, self._poll_interval)
            watcher.add_change_listener(self._on_change)
            watcher.add_error_listener(self._on_error)
            self._last_change = None
            self._last_changed_at = None
            self._last_error = None
            try:
                watcher.attach(path)
            except NotFoundError as exc:
                logger.warning("Could not attach %s: %s", path, exc)
                self._sink.clear()
                self._last_error = str(exc)
                raise
            self._watcher = watcher
            logger.info("Attached %s (%d lines)", watcher.display_path, self._sink.line_count())
            return self._status_locked()

    def detach(self) -> None:
        """Stop watching and drop the displayed lines."""

        with self._lock:
            self._detach_locked()
            self._sink.clear()
            self._last_change = None
            self._last_changed_at = None
            self._last_error = None

    def status(self) -> ViewerStatus:
        with self._lock:
            return self._status_locked()

    def lines(self, offset: int = 0, limit: Optional[int] = None) -> List[str]:
        return self._sink.lines(offset, limit)

    # Internals ------------------------------------------------------------------
    def _detach_locked(self) -> None:
        if self._watcher is None:
            return
        watcher = self._watcher
        self._watcher = None
        watcher.stop()
        watcher.remove_change_listener(self._on_change)
        watcher.remove_error_listener(self._on_error)
        logger.info("Detached %s", watcher.display_path)

    def _status_locked(self) -> ViewerStatus:
        watcher = self._watcher
        return ViewerStatus(
            path=watcher.path if watcher else None,
            file_name=watcher.file_name if watcher else NO_LOG_FILE,
            state=watcher.state if watcher else WatcherState.STOPPED,
            line_count=self._sink.line_count(),
            batches=self._sink.batches,
            poll_interval=self._poll_interval,
            last_change=self._last_change,
            last_changed_at=self._last_changed_at,
            last_error=self._last_error,
        )

    def _on_change(self, event: ChangeEvent) -> None:
        # Runs on the watcher thread; do not take self._lock here, a detach
        # holding it may be joining this very thread.
        self._last_change = event
        self._last_changed_at = datetime.now(timezone.utc)
        self._last_error = None

    def _on_error(self, error: Exception) -> None:
        self._last_error = str(error)

    @staticmethod
    def _default_watcher_factory(sink: MemorySink, poll_interval: float) -> TailWatcher:
        return TailWatcher(sink, poll_interval=poll_interval)

    # Serialisation helpers -------------------------------------------------------
    def to_status_payload(self, status: ViewerStatus) -> Dict[str, Any]:
        """Convert a status into a serialisable structure for the API layer."""

        change = None
        if status.last_change is not None:
            change = {
                "old_length": status.last_change.old_length,
                "new_length": status.last_change.new_length,
                "changed_at": status.last_changed_at,
            }
        return {
            "path": str(status.path) if status.path else None,
            "file_name": status.file_name,
            "state": status.state.value,
            "line_count": status.line_count,
            "batches": status.batches,
            "poll_interval": status.poll_interval,
            "last_change": change,
            "last_error": status.last_error,
        }
