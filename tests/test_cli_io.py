from __future__ import annotations

import json
from pathlib import Path

import pytest

from apps.cli.io import (
    build_export_path,
    has_template_suffix,
    read_text_input,
    write_json_atomic,
    write_template_atomic,
)
from core.config.settings_loader import default_settings


def test_build_export_path_uses_configured_filename(tmp_path: Path) -> None:
    assert build_export_path(tmp_path, default_settings()) == tmp_path / "transform-v2.ftl"


def test_has_template_suffix_is_case_insensitive() -> None:
    settings = default_settings()

    assert has_template_suffix(Path("x.FTL"), settings) is True
    assert has_template_suffix(Path("x.txt"), settings) is False


def test_read_text_input_strips_bom(tmp_path: Path) -> None:
    path = tmp_path / "schema.json"
    path.write_bytes(b'\xef\xbb\xbf{"a": 1}')

    assert read_text_input(path) == '{"a": 1}'


def test_write_template_atomic_appends_newline_and_cleans_tmp(tmp_path: Path) -> None:
    path = tmp_path / "out" / "transform-v2.ftl"

    write_template_atomic(path, "{\n}")

    assert path.read_text(encoding="utf-8") == "{\n}\n"
    assert list(path.parent.glob("*.tmp")) == []


def test_write_template_atomic_cleans_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "transform-v2.ftl"

    def broken_write_text(self: Path, *args: object, **kwargs: object) -> int:
        raise RuntimeError("write failed")

    monkeypatch.setattr(Path, "write_text", broken_write_text)

    with pytest.raises(RuntimeError, match="write failed"):
        write_template_atomic(path, "{}")

    assert not path.exists()
    assert list(tmp_path.glob("*.tmp")) == []


def test_write_json_atomic_writes_sorted_payload(tmp_path: Path) -> None:
    path = tmp_path / "report.json"

    write_json_atomic(path, {"b": 1, "a": 2})

    assert json.loads(path.read_text(encoding="utf-8")) == {"a": 2, "b": 1}
    assert path.read_text(encoding="utf-8").index('"a"') < path.read_text(encoding="utf-8").index('"b"')
