# src/errors.py

from typing import Optional

class AppError(Exception):
    """
    Base exception for the log viewer.
    All other exceptions should inherit from this.
    """
    def __init__(self, message: str, *, underlying: Optional[Exception] = None):
        super().__init__(message)
        self.underlying = underlying

    def __str__(self):
        if self.underlying:
            return f"{self.args[0]} (caused by {self.underlying})"
        return self.args[0]


class NotFoundError(AppError):
    """
    Raised when a log file cannot be attached because it is missing or unreadable.
    """


class TransientReadError(AppError):
    """
    Raised when a watched file vanishes or becomes unreadable between polls.
    The polling loop reports it and keeps going.
    """


class InvariantViolation(AppError):
    """
    Raised when a second polling loop would run on the same watcher.
    """


class SettingsError(AppError):
    """
    Raised when the viewer settings file cannot be read or fails validation.
    """
