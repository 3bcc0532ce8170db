"""Pydantic schemas used by the public FastAPI surface."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AttachRequest(BaseModel):
    """Request body for attaching (or switching to) a log file."""

    model_config = ConfigDict(extra="forbid")

    path: str = Field(
        description="Filesystem path of the log file to follow.",
        min_length=1,
        max_length=4096,
    )

    @field_validator("path", mode="before")
    @classmethod
    def _clean_path(cls, value: str) -> str:
        if isinstance(value, str):
            trimmed = value.strip()
            if not trimmed:
                raise ValueError("Path cannot be blank.")
            return trimmed
        return value


class ChangeInfo(BaseModel):
    """Most recent change picked up by the watcher."""

    old_length: int
    new_length: int
    changed_at: Optional[datetime]


class ViewerStatusResponse(BaseModel):
    """State of the viewer slot."""

    path: Optional[str]
    file_name: str
    state: Literal["stopped", "starting", "polling", "reloading"]
    line_count: int
    batches: int
    poll_interval: float
    last_change: Optional[ChangeInfo]
    last_error: Optional[str]


class LinePage(BaseModel):
    """A window over the lines currently held by the viewer."""

    offset: int
    total: int
    lines: List[str]


class ErrorMessage(BaseModel):
    """Consistent error envelope for API responses."""

    detail: str
