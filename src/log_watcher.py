# src/log_watcher.py
import itertools
import logging
import os
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union

from errors import InvariantViolation, NotFoundError, TransientReadError
from line_sink import LineSink, NullSink
from models import (
    LOG_ENCODING,
    NO_LOG_FILE,
    TAB_IN_SPACES,
    ChangeEvent,
    FileSnapshot,
    WatcherState,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

ChangeListener = Callable[[ChangeEvent], None]
ErrorListener = Callable[[Exception], None]


def expand_tabs(line: str) -> str:
    """Replace every tab with a fixed run of eight spaces."""
    return line.replace("\t", TAB_IN_SPACES)


def read_lines(path: Path, skip: int = 0) -> List[str]:
    """
    Return the lines of ``path`` after the first ``skip`` ones, tabs expanded.

    The file is opened for this call only. Every line is collected before
    returning, so a failure halfway through yields an exception and no lines.
    A last line without a terminator is returned like any other.
    """
    try:
        with open(path, 'r', encoding=LOG_ENCODING, newline=None) as f:
            return [expand_tabs(raw.rstrip('\n')) for raw in itertools.islice(f, skip, None)]
    except OSError as e:
        raise TransientReadError(f"Could not read {path}", underlying=e) from e


def take_snapshot(path: Path) -> FileSnapshot:
    st = os.stat(path)
    return FileSnapshot(length=st.st_size, mtime_ns=st.st_mtime_ns)


class TailWatcher:
    """
    Polls one log file and keeps a :class:`LineSink` in step with it.

    Every ``poll_interval`` seconds a background thread compares the file's
    length and modification time with the previous sample. A shorter file
    is reloaded from scratch (``clear`` then every line); otherwise the sink's
    :meth:`LineSink.line_count` lines are skipped and the rest appended. Each
    reload ends with exactly one ``batch_complete`` and is followed by a
    :class:`ChangeEvent` to the change listeners.

    Reloads never overlap. ``stop()`` lets an in-flight reload finish and
    joins the polling thread, so once it returns no more lines arrive from
    the previous file.
    """

    def __init__(self, sink: Optional[LineSink] = None, poll_interval: float = DEFAULT_POLL_INTERVAL):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval
        self._sink: LineSink = sink if sink is not None else NullSink()
        self._path: Optional[Path] = None
        self._snapshot: Optional[FileSnapshot] = None
        self._state = WatcherState.STOPPED
        # Bumped on every attach so a late tick cannot touch a newer file's state
        self._generation = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._change_listeners: List[ChangeListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._lock = threading.RLock()
        self._lifecycle_lock = threading.RLock()
        self._reload_lock = threading.RLock()

    # Properties -----------------------------------------------------------------
    @property
    def sink(self) -> LineSink:
        with self._lock:
            return self._sink

    @sink.setter
    def sink(self, sink: Optional[LineSink]) -> None:
        with self._lock:
            self._sink = sink if sink is not None else NullSink()

    @property
    def path(self) -> Optional[Path]:
        with self._lock:
            return self._path

    @property
    def file_name(self) -> str:
        with self._lock:
            return self._path.name if self._path is not None else NO_LOG_FILE

    @property
    def display_path(self) -> str:
        with self._lock:
            return str(self._path) if self._path is not None else NO_LOG_FILE

    @property
    def state(self) -> WatcherState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    # Listeners ------------------------------------------------------------------
    def add_change_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            self._change_listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            if listener in self._change_listeners:
                self._change_listeners.remove(listener)

    def add_error_listener(self, listener: ErrorListener) -> None:
        with self._lock:
            self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        with self._lock:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

    # Lifecycle ------------------------------------------------------------------
    def attach(self, path: Union[str, Path]) -> None:
        """
        Stop any current loop, load ``path`` into the sink and start polling it.
        Raises NotFoundError if the file cannot be opened.
        """
        with self._lifecycle_lock:
            self.stop()
            self._open(path)
            try:
                self.load()
            except TransientReadError as e:
                self._close()
                raise NotFoundError(f"Could not load log file: {path}", underlying=e) from e
            self._spawn()

    def start(self, path: Union[str, Path]) -> None:
        """
        Begin polling ``path`` without loading it first.
        Any loop already running on this watcher is stopped before.
        """
        with self._lifecycle_lock:
            self.stop()
            self._open(path)
            self._spawn()

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly or before ``start``."""
        with self._lifecycle_lock:
            with self._lock:
                thread = self._thread
                self._thread = None
                self._stop.set()
            if thread is not None and thread is not threading.current_thread():
                thread.join()
            with self._lock:
                self._state = WatcherState.STOPPED
                path = self._path
            if thread is not None:
                logger.info(f"Stopped watching {path}")

    def load(self) -> None:
        """Full reload: clear the sink, append every line, signal completion."""
        with self._lock:
            path = self._path
            generation = self._generation
        if path is None:
            raise NotFoundError(NO_LOG_FILE)
        with self._reload_lock:
            try:
                snapshot = take_snapshot(path)
            except OSError as e:
                raise TransientReadError(f"Could not stat {path}", underlying=e) from e
            with self._lock:
                sink = self._sink
            self._full_reload(path, sink)
            with self._lock:
                if generation == self._generation:
                    self._snapshot = snapshot

    def _open(self, path: Union[str, Path]) -> None:
        path = Path(path).expanduser().absolute()
        if not path.is_file() or not os.access(path, os.R_OK):
            self._close()
            raise NotFoundError(f"Log file not found or not readable: {path}")
        try:
            snapshot = take_snapshot(path)
        except OSError as e:
            self._close()
            raise NotFoundError(f"Log file not found or not readable: {path}", underlying=e) from e
        with self._lock:
            self._generation += 1
            self._path = path
            self._snapshot = snapshot
            self._state = WatcherState.STARTING

    def _close(self) -> None:
        with self._lock:
            self._generation += 1
            self._path = None
            self._snapshot = None
            self._state = WatcherState.STOPPED

    def _spawn(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                raise InvariantViolation(f"A polling loop is already running for {self._path}")
            self._stop = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop,),
                name=f"tail-{self._path.name}",
                daemon=True,
            )
            self._state = WatcherState.POLLING
            self._thread.start()
            path = self._path
        logger.info(f"Started watching {path}")

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.poll_interval):
            try:
                self.tick()
            except Exception as e:
                logger.exception("Error while polling log file")
                self._report(e)

    # Polling --------------------------------------------------------------------
    def tick(self) -> Optional[ChangeEvent]:
        """
        Sample the file once and reload the sink if it changed.
        Returns the change that was applied, or None.
        """
        with self._lock:
            path = self._path
            previous = self._snapshot
            generation = self._generation
        if path is None or previous is None:
            return None

        try:
            current = take_snapshot(path)
        except OSError as e:
            self._report(TransientReadError(f"Could not stat {path}", underlying=e))
            return None
        if current == previous:
            return None

        event = ChangeEvent(old_length=previous.length, new_length=current.length)
        with self._reload_lock:
            with self._lock:
                if generation != self._generation:
                    return None
                # another tick or load already applied this change
                if self._snapshot != previous or self._snapshot == current:
                    return None
                sink = self._sink
                reloading = self._state is WatcherState.POLLING
                if reloading:
                    self._state = WatcherState.RELOADING
            try:
                if event.shrunk:
                    logger.info(
                        "%s shrank from %d to %d bytes, reloading from the start",
                        path, event.old_length, event.new_length,
                    )
                    self._full_reload(path, sink)
                else:
                    self._incremental_reload(path, sink)
            except TransientReadError as e:
                # Snapshot stays put so the same change is retried next tick
                self._report(e)
                return None
            finally:
                with self._lock:
                    if reloading and self._state is WatcherState.RELOADING:
                        self._state = WatcherState.POLLING

            with self._lock:
                if generation != self._generation:
                    return None
                self._snapshot = current
                listeners = list(self._change_listeners)
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception("Change listener failed")
        return event

    def _full_reload(self, path: Path, sink: LineSink) -> None:
        lines = read_lines(path)
        sink.clear()
        for line in lines:
            sink.append(line)
        sink.batch_complete()
        logger.debug("Loaded %d lines from %s", len(lines), path)

    def _incremental_reload(self, path: Path, sink: LineSink) -> None:
        skip = sink.line_count()
        lines = read_lines(path, skip)
        for line in lines:
            sink.append(line)
        sink.batch_complete()
        logger.debug("Appended %d lines from %s after skipping %d", len(lines), path, skip)

    def _report(self, error: Exception) -> None:
        logger.warning("%s", error)
        with self._lock:
            listeners = list(self._error_listeners)
        for listener in listeners:
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener failed")
