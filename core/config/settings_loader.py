"""Settings loading utilities for the mapping editor."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SETTINGS_ENV_VAR = "FTLMAP_SETTINGS_PATH"


class EditorSettings(BaseModel):
    """Editor settings loaded from YAML."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type_aliases: tuple[str, ...]
    max_schema_depth: int = Field(gt=0)
    max_template_lines: int = Field(gt=0)
    max_nesting_depth: int = Field(gt=0)
    indent: int = Field(default=2, ge=1, le=8)
    conditional_else_text: str = "N/A"
    export_filename: str
    export_media_type: str = "text/plain"
    template_suffixes: tuple[str, ...]

    @field_validator("template_suffixes")
    @classmethod
    def _normalize_suffixes(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        normalized = []
        for suffix in value:
            suffix = suffix.strip().lower()
            if not suffix.startswith("."):
                suffix = f".{suffix}"
            normalized.append(suffix)
        return tuple(normalized)


def load_settings(path: Path | None = None) -> EditorSettings:
    """Load and validate editor settings from YAML."""

    settings_path = path or _default_settings_path()

    try:
        raw = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Settings file not found: {settings_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in settings file: {settings_path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must contain a mapping: {settings_path}")

    try:
        return EditorSettings.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings schema: {settings_path}") from exc


@lru_cache(maxsize=1)
def default_settings() -> EditorSettings:
    """Return the process-wide default settings (cached)."""

    return load_settings()


def _default_settings_path() -> Path:
    override = os.getenv(SETTINGS_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path(__file__).with_name("settings.yaml")
