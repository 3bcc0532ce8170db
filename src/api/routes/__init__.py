"""API route registration helpers."""

from .viewer import get_router as get_viewer_router

__all__ = ["get_viewer_router"]
