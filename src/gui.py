# src/gui.py

import argparse
import logging
import re
import sys
import typing
from pathlib import Path

from PyQt5.QtWidgets import (
    QAction, QApplication, QFileDialog, QInputDialog, QListWidget,
    QListWidgetItem, QMainWindow, QMessageBox, QVBoxLayout, QWidget,
    QAbstractItemView
)
from PyQt5.QtGui import QBrush, QCloseEvent, QColor, QFont, QKeySequence, QPalette
from PyQt5.QtCore import QObject, Qt, pyqtSignal

# application modules
from errors import AppError, NotFoundError
from line_sink import MemorySink
from log_watcher import TailWatcher
from logging_config import setup_logging
from models import NO_LOG_FILE, ChangeEvent
from paths import ensure_runtime_directories
from settings import HighlightRule, ViewerSettings, load_settings

logger = logging.getLogger(__name__)

WINDOW_TITLE = "Follow Tail"


class SinkSignals(QObject):
    appended = pyqtSignal(str)
    cleared = pyqtSignal()
    batch_done = pyqtSignal()
    file_changed = pyqtSignal(int, int)
    read_failed = pyqtSignal(str)


class PanelSink(MemorySink):
    """
    Line store for the log panel.
    Counts are answered from the list kept here, so the watcher thread never
    waits on the Qt event loop; the widget is updated through queued signals.
    """

    def __init__(self, signals: SinkSignals):
        super().__init__()
        self.signals = signals

    def append(self, line: str) -> None:
        super().append(line)
        self.signals.appended.emit(line)

    def clear(self) -> None:
        super().clear()
        self.signals.cleared.emit()

    def batch_complete(self) -> None:
        super().batch_complete()
        self.signals.batch_done.emit()


class LogFilePanel(QWidget):
    """Shows one log file and keeps it in step with the file on disk."""

    follow_tail_changed = pyqtSignal(bool)

    def __init__(self, settings: ViewerSettings, parent=None):
        super().__init__(parent)
        self.settings = settings
        self.follow_tail = settings.follow_tail
        self._rules: typing.List[typing.Tuple[re.Pattern, HighlightRule]] = []

        self.signals = SinkSignals(self)
        self.sink = PanelSink(self.signals)
        self.watcher = TailWatcher(self.sink, poll_interval=settings.poll_interval)
        self.watcher.add_change_listener(self._on_file_changed)
        self.watcher.add_error_listener(self._on_read_error)

        self.list = QListWidget()
        self.list.setSelectionMode(QAbstractItemView.ContiguousSelection)
        self.list.setUniformItemSizes(True)
        self.list.setHorizontalScrollBarPolicy(Qt.ScrollBarAsNeeded)
        font = QFont("Monospace")
        font.setStyleHint(QFont.TypeWriter)
        self.list.setFont(font)
        self.list.verticalScrollBar().valueChanged.connect(self._on_scroll)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.list)
        self.setLayout(layout)

        self.signals.appended.connect(self._add_row)
        self.signals.cleared.connect(self.list.clear)
        self.signals.batch_done.connect(self._batch_done)

        self.set_highlightings(settings.highlightings)

    # Watcher side ---------------------------------------------------------------
    def attach(self, path: str) -> None:
        try:
            self.watcher.attach(path)
        except NotFoundError:
            self.sink.clear()
            raise
        self._scroll()

    def close_log_file(self):
        self.watcher.stop()

    def file_name(self) -> str:
        return self.watcher.file_name

    def display_path(self) -> str:
        return self.watcher.display_path

    def _on_file_changed(self, event: ChangeEvent):
        # watcher thread
        self.signals.file_changed.emit(event.old_length, event.new_length)

    def _on_read_error(self, error: Exception):
        # watcher thread
        self.signals.read_failed.emit(str(error))

    # Widget side ----------------------------------------------------------------
    def _add_row(self, line: str):
        item = QListWidgetItem(line)
        self._paint(item)
        self.list.addItem(item)

    def _batch_done(self):
        self._scroll()

    def set_highlightings(self, rules: typing.Iterable[HighlightRule]):
        self._rules = [
            (re.compile(rule.pattern, re.IGNORECASE | re.UNICODE), rule) for rule in rules
        ]
        for row in range(self.list.count()):
            self._paint(self.list.item(row))

    def _paint(self, item: QListWidgetItem):
        item.setBackground(QBrush())
        item.setForeground(QBrush())
        # first matching rule wins
        for pattern, rule in self._rules:
            if pattern.search(item.text()):
                item.setBackground(QBrush(QColor(rule.background)))
                if rule.foreground:
                    item.setForeground(QBrush(QColor(rule.foreground)))
                return

    def set_follow_tail(self, follow: bool):
        if self.follow_tail != follow:
            self.follow_tail = follow
            self.follow_tail_changed.emit(follow)
        self._scroll()

    def _scroll(self):
        if self.follow_tail and self.list.count():
            self.list.scrollToBottom()

    def _on_scroll(self, value: int):
        bar = self.list.verticalScrollBar()
        if not bar.isSliderDown():
            return
        # user dragged away from the bottom: stop following; back at the bottom: follow again
        self.set_follow_tail(value >= bar.maximum())

    def find_next(self, text: str) -> bool:
        if not text:
            return False
        needle = text.lower()
        count = self.list.count()
        start = self.list.currentRow() + 1
        for offset in range(count):
            row = (start + offset) % count
            if needle in self.list.item(row).text().lower():
                self.set_follow_tail(False)
                self.list.setCurrentRow(row)
                self.list.scrollToItem(self.list.item(row), QAbstractItemView.PositionAtCenter)
                return True
        return False


class MainWindow(QMainWindow):
    def __init__(self, settings: ViewerSettings):
        super().__init__()
        self.settings = settings
        self.resize(1000, 700)

        self.panel = LogFilePanel(settings)
        self.setCentralWidget(self.panel)
        self.panel.signals.batch_done.connect(self._update_status)
        self.panel.signals.read_failed.connect(self._show_read_error)
        self.panel.follow_tail_changed.connect(self._on_follow_changed)

        # Menus
        file_menu = self.menuBar().addMenu("&File")
        open_act = QAction("&Open…", self)
        open_act.setShortcut(QKeySequence.Open)
        open_act.triggered.connect(self._pick_file)
        file_menu.addAction(open_act)
        close_act = QAction("&Close", self)
        close_act.triggered.connect(self.on_close_file)
        file_menu.addAction(close_act)
        file_menu.addSeparator()
        exit_act = QAction("E&xit", self)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        view_menu = self.menuBar().addMenu("&View")
        self.follow_act = QAction("&Follow Tail", self)
        self.follow_act.setCheckable(True)
        self.follow_act.setChecked(self.panel.follow_tail)
        self.follow_act.setShortcut("Ctrl+T")
        self.follow_act.toggled.connect(self.panel.set_follow_tail)
        view_menu.addAction(self.follow_act)
        find_act = QAction("&Find…", self)
        find_act.setShortcut(QKeySequence.Find)
        find_act.triggered.connect(self._find)
        view_menu.addAction(find_act)

        self._last_search = ""
        self._update_title()

    def open_file(self, path: str):
        try:
            self.panel.attach(path)
        except AppError as e:
            logger.warning("Could not open %s: %s", path, e)
            QMessageBox.critical(self, "Open Log File", str(e))
        self._update_title()
        self._update_status()

    def _pick_file(self):
        start_dir = str(self.panel.watcher.path.parent) if self.panel.watcher.path else ""
        path, _ = QFileDialog.getOpenFileName(self, "Select Log File", start_dir, "Log files (*.log *.txt);;All files (*)")
        if path:
            self.open_file(path)

    def on_close_file(self):
        self.panel.close_log_file()
        self.statusBar().showMessage("Stopped following " + self.panel.display_path())

    def _find(self):
        text, ok = QInputDialog.getText(self, "Find", "Text:", text=self._last_search)
        if ok and text:
            self._last_search = text
            if not self.panel.find_next(text):
                self.statusBar().showMessage(f"'{text}' not found")

    def _on_follow_changed(self, follow: bool):
        if self.follow_act.isChecked() != follow:
            self.follow_act.setChecked(follow)

    def _update_title(self):
        name = self.panel.file_name()
        if name == NO_LOG_FILE:
            self.setWindowTitle(f"{WINDOW_TITLE} - {NO_LOG_FILE}")
        else:
            self.setWindowTitle(f"{WINDOW_TITLE} - {name} ({self.panel.display_path()})")

    def _update_status(self):
        self.statusBar().showMessage(f"{self.panel.sink.line_count()} lines")

    def _show_read_error(self, message: str):
        self.statusBar().showMessage(f"⚠ {message}")

    def closeEvent(self, a0: typing.Optional[QCloseEvent]) -> None:
        self.panel.close_log_file()
        super().closeEvent(a0)


def _apply_dark_palette(app: QApplication):
    dark = QPalette()
    dark.setColor(QPalette.Window,        QColor(53, 53, 53))
    dark.setColor(QPalette.WindowText,    QColor(255, 255, 255))
    dark.setColor(QPalette.Base,          QColor(42, 42, 42))
    dark.setColor(QPalette.AlternateBase, QColor(66, 66, 66))
    dark.setColor(QPalette.Text,          QColor(255, 255, 255))
    dark.setColor(QPalette.Button,        QColor(53, 53, 53))
    dark.setColor(QPalette.ButtonText,    QColor(255, 255, 255))
    dark.setColor(QPalette.Highlight,     QColor(42, 130, 218))
    dark.setColor(QPalette.HighlightedText, QColor(0, 0, 0))
    app.setPalette(dark)
    app.setStyle("Fusion")


def main():
    parser = argparse.ArgumentParser(description="Follow a growing log file.")
    parser.add_argument("path", nargs="?", help="Log file to open on startup.")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Settings YAML file.")
    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except AppError as e:
        print(f"follow-tail: {e}", file=sys.stderr)
        sys.exit(2)
    ensure_runtime_directories()
    setup_logging(log_file=settings.log_file, level=settings.log_level_number)

    app = QApplication(sys.argv[:1])
    _apply_dark_palette(app)

    w = MainWindow(settings)
    w.show()
    if args.path:
        w.open_file(args.path)
    sys.exit(app.exec_())


if __name__ == '__main__':
    main()
