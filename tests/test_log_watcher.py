"""Tests for the tail watcher's change detection and reload protocol."""

from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from errors import NotFoundError, TransientReadError
from line_sink import LineSink, NullSink
from log_watcher import TailWatcher, expand_tabs, read_lines
from models import NO_LOG_FILE, ChangeEvent, WatcherState

# Long enough that the background loop never ticks during a test; tests
# drive tick() themselves.
IDLE_POLL = 3600.0


class RecordingSink(LineSink):
    def __init__(self):
        self.lines: list[str] = []
        self.calls: list[tuple] = []

    def append(self, line: str) -> None:
        self.lines.append(line)
        self.calls.append(("append", line))

    def clear(self) -> None:
        self.lines.clear()
        self.calls.append(("clear",))

    def line_count(self) -> int:
        return len(self.lines)

    def batch_complete(self) -> None:
        self.calls.append(("batch",))

    def reset_calls(self) -> None:
        self.calls.clear()


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="iso-8859-1") as handle:
        handle.write(text)


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def log_path(tmp_path):
    path = tmp_path / "app.log"
    path.write_text("L1\nL2\n", encoding="iso-8859-1")
    return path


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def watcher(sink):
    w = TailWatcher(sink, poll_interval=IDLE_POLL)
    yield w
    w.stop()


def test_attach_performs_initial_full_load(watcher, sink, log_path):
    watcher.attach(log_path)

    assert sink.calls == [("clear",), ("append", "L1"), ("append", "L2"), ("batch",)]
    assert watcher.state is WatcherState.POLLING
    assert watcher.is_running
    assert watcher.path == log_path.absolute()
    assert watcher.file_name == "app.log"


def test_append_only_growth_delivers_new_lines_once(watcher, sink, log_path):
    watcher.attach(log_path)
    sink.reset_calls()

    _append(log_path, "L3\n")
    event = watcher.tick()

    assert event == ChangeEvent(old_length=6, new_length=9)
    assert sink.lines == ["L1", "L2", "L3"]
    assert sink.line_count() == 3
    assert sink.calls == [("append", "L3"), ("batch",)]


def test_truncation_triggers_full_reload(watcher, sink, log_path):
    _append(log_path, "L3\n")
    watcher.attach(log_path)
    sink.reset_calls()

    log_path.write_text("M1\n", encoding="iso-8859-1")
    event = watcher.tick()

    assert event is not None and event.shrunk
    assert sink.calls == [("clear",), ("append", "M1"), ("batch",)]
    assert sink.lines == ["M1"]


def test_unchanged_file_does_not_reload(watcher, sink, log_path):
    watcher.attach(log_path)
    sink.reset_calls()

    assert watcher.tick() is None
    assert watcher.tick() is None
    assert sink.calls == []


def test_coalesced_growth_is_delivered_in_one_batch(watcher, sink, log_path):
    watcher.attach(log_path)
    sink.reset_calls()

    _append(log_path, "L3\n")
    _append(log_path, "L4\nL5\n")
    watcher.tick()

    assert sink.calls == [
        ("append", "L3"),
        ("append", "L4"),
        ("append", "L5"),
        ("batch",),
    ]
    assert watcher.tick() is None


def test_same_length_with_new_mtime_runs_an_empty_incremental_reload(watcher, sink, log_path):
    watcher.attach(log_path)
    sink.reset_calls()

    st = os.stat(log_path)
    os.utime(log_path, ns=(st.st_atime_ns, st.st_mtime_ns + 5_000_000_000))
    event = watcher.tick()

    assert event == ChangeEvent(old_length=6, new_length=6)
    assert sink.calls == [("batch",)]
    assert sink.lines == ["L1", "L2"]


def test_tabs_expand_to_eight_spaces_on_every_reload(watcher, sink, tmp_path):
    path = tmp_path / "tabs.log"
    path.write_text("a\tb\n", encoding="iso-8859-1")
    expected = "a" + " " * 8 + "b"

    watcher.attach(path)
    assert sink.lines == [expected]

    watcher.load()
    watcher.load()
    assert sink.lines == [expected]
    assert expand_tabs("\t\t") == " " * 16


def test_read_lines_keeps_unterminated_last_line(tmp_path):
    path = tmp_path / "partial.log"
    path.write_bytes(b"one\r\ntwo\rthree")

    assert read_lines(path) == ["one", "two", "three"]
    assert read_lines(path, skip=2) == ["three"]
    assert read_lines(path, skip=10) == []


def test_read_lines_decodes_latin1(tmp_path):
    path = tmp_path / "latin.log"
    path.write_bytes(b"caf\xe9\n\xff\n")

    assert read_lines(path) == ["café", "ÿ"]


def test_attach_missing_file_raises_not_found(watcher, sink, tmp_path):
    with pytest.raises(NotFoundError):
        watcher.attach(tmp_path / "missing.log")

    assert watcher.state is WatcherState.STOPPED
    assert watcher.path is None
    assert watcher.file_name == NO_LOG_FILE
    assert not watcher.is_running
    assert sink.calls == []


def test_attach_directory_raises_not_found(watcher, tmp_path):
    with pytest.raises(NotFoundError):
        watcher.start(tmp_path)


def test_vanished_file_reports_transient_error_and_recovers(watcher, sink, log_path):
    errors: list[Exception] = []
    watcher.add_error_listener(errors.append)
    watcher.attach(log_path)
    sink.reset_calls()

    log_path.unlink()
    assert watcher.tick() is None
    assert len(errors) == 1
    assert isinstance(errors[0], TransientReadError)
    assert sink.calls == []
    assert sink.lines == ["L1", "L2"]

    log_path.write_text("new\n", encoding="iso-8859-1")
    watcher.tick()
    assert sink.lines == ["new"]
    assert len(errors) == 1


def test_change_listener_fires_after_reload(watcher, sink, log_path):
    seen: list[tuple] = []

    def listener(event):
        seen.append((event, list(sink.calls)))

    watcher.add_change_listener(listener)
    watcher.attach(log_path)
    sink.reset_calls()

    _append(log_path, "L3\n")
    watcher.tick()
    watcher.tick()

    assert len(seen) == 1
    event, calls_at_notification = seen[0]
    assert event == ChangeEvent(old_length=6, new_length=9)
    assert calls_at_notification[-1] == ("batch",)

    watcher.remove_change_listener(listener)
    _append(log_path, "L4\n")
    watcher.tick()
    assert len(seen) == 1


def test_stop_is_idempotent():
    w = TailWatcher()
    w.stop()
    w.stop()
    assert w.state is WatcherState.STOPPED
    assert isinstance(w.sink, NullSink)


def test_null_sink_is_safe_to_drive(log_path):
    w = TailWatcher(poll_interval=IDLE_POLL)
    try:
        w.attach(log_path)
        _append(log_path, "L3\n")
        assert w.tick() == ChangeEvent(old_length=6, new_length=9)
    finally:
        w.stop()


def test_stop_keeps_the_file_identity(watcher, sink, log_path):
    watcher.attach(log_path)
    watcher.stop()

    assert watcher.state is WatcherState.STOPPED
    assert not watcher.is_running
    assert watcher.file_name == "app.log"
    _append(log_path, "L3\n")
    time.sleep(0.1)
    assert sink.lines == ["L1", "L2"]


def test_polling_thread_picks_up_appends(sink, log_path):
    w = TailWatcher(sink, poll_interval=0.05)
    try:
        w.attach(log_path)
        _append(log_path, "L3\n")
        assert _wait_for(lambda: sink.line_count() == 3)
        assert sink.lines == ["L1", "L2", "L3"]
    finally:
        w.stop()


def test_switching_files_stops_the_previous_loop(sink, tmp_path):
    first = tmp_path / "a.log"
    first.write_text("A1\n", encoding="iso-8859-1")
    second = tmp_path / "b.log"
    second.write_text("B1\nB2\n", encoding="iso-8859-1")

    w = TailWatcher(sink, poll_interval=0.05)
    try:
        w.attach(first)
        w.attach(second)

        assert not any(t.name == "tail-a.log" and t.is_alive() for t in threading.enumerate())
        assert sink.lines == ["B1", "B2"]

        _append(first, "A2\nA3\nA4\n")
        time.sleep(0.3)
        assert sink.lines == ["B1", "B2"]

        _append(second, "B3\n")
        assert _wait_for(lambda: sink.line_count() == 3)
        assert sink.lines == ["B1", "B2", "B3"]
    finally:
        w.stop()


def test_poll_interval_must_be_positive():
    with pytest.raises(ValueError):
        TailWatcher(poll_interval=0)


class GatedSink(RecordingSink):
    """Blocks inside clear() once armed, holding a reload in flight."""

    def __init__(self):
        super().__init__()
        self.armed = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def clear(self) -> None:
        if self.armed:
            self.entered.set()
            assert self.release.wait(5.0)
        super().clear()


def test_concurrent_ticks_apply_one_change_once(log_path):
    sink = GatedSink()
    w = TailWatcher(sink, poll_interval=IDLE_POLL)
    events: list[ChangeEvent] = []
    results: dict[str, object] = {}
    w.add_change_listener(events.append)
    try:
        w.attach(log_path)
        sink.reset_calls()
        sink.armed = True

        log_path.write_text("M1\n", encoding="iso-8859-1")
        first = threading.Thread(target=lambda: results.setdefault("first", w.tick()))
        first.start()
        assert sink.entered.wait(3.0)

        second = threading.Thread(target=lambda: results.setdefault("second", w.tick()))
        second.start()
        # let the second tick sample the file and queue up behind the reload
        time.sleep(0.2)
        sink.release.set()
        first.join(3.0)
        second.join(3.0)

        assert results["first"] == ChangeEvent(old_length=6, new_length=3)
        assert results["second"] is None
        assert sink.calls.count(("batch",)) == 1
        assert sink.calls == [("clear",), ("append", "M1"), ("batch",)]
        assert events == [ChangeEvent(old_length=6, new_length=3)]
    finally:
        sink.release.set()
        w.stop()


def test_failed_read_delivers_nothing_and_is_retried(watcher, sink, log_path, monkeypatch):
    errors: list[Exception] = []
    watcher.add_error_listener(errors.append)
    watcher.attach(log_path)
    sink.reset_calls()

    def unreadable(path, skip=0):
        raise TransientReadError(f"Could not read {path}")

    _append(log_path, "L3\n")
    monkeypatch.setattr("log_watcher.read_lines", unreadable)
    assert watcher.tick() is None
    assert sink.calls == []
    assert len(errors) == 1
    assert isinstance(errors[0], TransientReadError)

    monkeypatch.undo()
    assert watcher.tick() == ChangeEvent(old_length=6, new_length=9)
    assert sink.calls == [("append", "L3"), ("batch",)]
    assert sink.lines == ["L1", "L2", "L3"]
    assert len(errors) == 1


def test_failing_change_listener_does_not_block_others(watcher, sink, log_path):
    seen: list[ChangeEvent] = []

    def broken(event):
        raise RuntimeError("listener exploded")

    watcher.add_change_listener(broken)
    watcher.add_change_listener(seen.append)
    watcher.attach(log_path)

    _append(log_path, "L3\n")
    event = watcher.tick()

    assert event == ChangeEvent(old_length=6, new_length=9)
    assert seen == [event]
    assert watcher.tick() is None
