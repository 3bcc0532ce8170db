"""Central definitions for repository paths used across the application."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = BASE_DIR / "config"
LOGS_DIR = BASE_DIR / "logs"

DEFAULT_SETTINGS_FILE = CONFIG_DIR / "follow-tail.yaml"
APP_LOG_FILE = LOGS_DIR / "follow-tail.log"

_RUNTIME_DIRECTORIES = (
    LOGS_DIR,
)


def ensure_runtime_directories(additional: Optional[Iterable[Path]] = None) -> None:
    """Ensure that all runtime directories exist on disk."""

    for directory in _RUNTIME_DIRECTORIES:
        directory.mkdir(parents=True, exist_ok=True)

    if additional is None:
        return

    for path in additional:
        Path(path).mkdir(parents=True, exist_ok=True)


__all__ = [
    "BASE_DIR",
    "CONFIG_DIR",
    "LOGS_DIR",
    "DEFAULT_SETTINGS_FILE",
    "APP_LOG_FILE",
    "ensure_runtime_directories",
]
