"""Service layer helpers for the log viewer."""

from .viewer_service import ViewerService, ViewerStatus

__all__ = [
    "ViewerService",
    "ViewerStatus",
]
