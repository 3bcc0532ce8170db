from dataclasses import dataclass
from enum import Enum

# Latin-1 keeps one byte per character so file lengths and text offsets agree.
LOG_ENCODING = "iso-8859-1"
TAB_IN_SPACES = " " * 8
NO_LOG_FILE = "No log file"


class WatcherState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    POLLING = "polling"
    RELOADING = "reloading"


@dataclass(frozen=True)
class FileSnapshot:
    """
    Length and modification token of a watched file at one poll.
    Two snapshots compare equal when nothing observable changed.
    """
    length: int
    mtime_ns: int


@dataclass(frozen=True)
class ChangeEvent:
    """
    Emitted once per detected change, after the sink has been reloaded.
    Carries no line data.
    """
    old_length: int
    new_length: int

    @property
    def shrunk(self) -> bool:
        return self.new_length < self.old_length

