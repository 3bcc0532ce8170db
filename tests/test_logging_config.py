import logging
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_setup_logging_writes_to_file(restore_root_logger, tmp_path):
    log_file = tmp_path / "nested" / "viewer.log"

    setup_logging(log_file=log_file, level=logging.DEBUG)
    logging.getLogger("log_watcher").info("Started watching %s", "app.log")
    for handler in restore_root_logger.handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "INFO [log_watcher] Started watching app.log" in text


def test_setup_logging_twice_does_not_duplicate_handlers(restore_root_logger, tmp_path):
    before = len(restore_root_logger.handlers)

    setup_logging(log_file=tmp_path / "a.log")
    setup_logging(log_file=tmp_path / "b.log", level=logging.WARNING)

    assert len(restore_root_logger.handlers) == before + 2
    assert restore_root_logger.level == logging.WARNING
