"""Viewer settings loaded from an optional YAML file."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import SettingsError
from log_watcher import DEFAULT_POLL_INTERVAL
from paths import APP_LOG_FILE, DEFAULT_SETTINGS_FILE

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FOLLOW_TAIL_CONFIG"


class HighlightRule(BaseModel):
    """Paint lines matching ``pattern`` (case-insensitive regex) in the given colours."""

    model_config = ConfigDict(extra="forbid")

    pattern: str = Field(min_length=1)
    background: str = Field(default="#ffff66", min_length=1)
    foreground: Optional[str] = Field(default="#000000")

    @field_validator("pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid highlight pattern {value!r}: {exc}") from exc
        return value


class ViewerSettings(BaseModel):
    """Runtime configuration for the watcher, the window and the API."""

    model_config = ConfigDict(extra="forbid")

    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        gt=0,
        description="Seconds between two samples of the watched file.",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_file: Optional[Path] = Field(
        default=APP_LOG_FILE,
        description="Where the application's own log is written; null for console only.",
    )
    follow_tail: bool = Field(
        default=True,
        description="Keep the last line visible as the file grows.",
    )
    highlightings: List[HighlightRule] = Field(default_factory=list)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)


def resolve_settings_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the settings file: explicit argument, then environment, then default."""

    if path is not None:
        return Path(path).expanduser()
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_SETTINGS_FILE


def load_settings(path: Optional[Union[str, Path]] = None) -> ViewerSettings:
    """
    Load settings from YAML. A missing file yields the defaults, but only
    when no path was asked for explicitly.
    """

    settings_path = resolve_settings_path(path)
    explicit = path is not None or bool(os.environ.get(CONFIG_ENV_VAR))

    if not settings_path.is_file():
        if explicit:
            raise SettingsError(f"Settings file not found: {settings_path}")
        logger.debug("No settings file at %s, using defaults", settings_path)
        return ViewerSettings()

    try:
        raw = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise SettingsError(f"Could not read settings file {settings_path}", underlying=exc) from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file {settings_path} must contain a mapping")

    try:
        settings = ViewerSettings(**raw)
    except ValidationError as exc:
        raise SettingsError(f"Invalid settings in {settings_path}", underlying=exc) from exc

    logger.info("Loaded settings from %s", settings_path)
    return settings
