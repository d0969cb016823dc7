"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from core.config.settings_loader import EditorSettings


def build_export_path(out_dir: Path, settings: EditorSettings) -> Path:
    """Build the generated template path under out_dir."""

    return out_dir / settings.export_filename


def has_template_suffix(path: Path, settings: EditorSettings) -> bool:
    return path.suffix.lower() in settings.template_suffixes


def read_text_input(path: Path) -> str:
    """Read a UTF-8 input file, tolerating a BOM."""

    return path.read_text(encoding="utf-8-sig")


def write_template_atomic(path: Path, text: str) -> None:
    """Write generated template text atomically using a temp file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_text(text if text.endswith("\n") else f"{text}\n", encoding="utf-8")
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write a JSON report atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, indent=2)

    tmp_path.replace(path)
