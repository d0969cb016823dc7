"""Local JSON store for editing sessions."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from core.config.settings_loader import EditorSettings
from core.orchestrator.session import SESSION_PAYLOAD_VERSION, EditorSession


class SessionStore:
    """Persist one editing session in a JSON file."""

    def __init__(self, store_path: Path) -> None:
        self._store_path = store_path

    @property
    def path(self) -> Path:
        return self._store_path

    def exists(self) -> bool:
        return self._store_path.exists()

    def load(self, settings: EditorSettings | None = None) -> EditorSession:
        if not self._store_path.exists():
            return EditorSession(settings)

        try:
            raw = json.loads(self._store_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid session JSON: {self._store_path}") from exc

        if not isinstance(raw, dict):
            raise ValueError(f"Session file must contain an object: {self._store_path}")

        version = int(raw.get("version", SESSION_PAYLOAD_VERSION))
        if version != SESSION_PAYLOAD_VERSION:
            raise ValueError(f"Unsupported session version {version}: {self._store_path}")

        try:
            return EditorSession.from_payload(raw, settings)
        except (ValidationError, TypeError) as exc:
            raise ValueError(f"Invalid session schema: {self._store_path}") from exc

    def save(self, session: EditorSession) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._store_path.with_suffix(f"{self._store_path.suffix}.tmp")

        temp_path.write_text(
            json.dumps(session.to_payload(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        temp_path.replace(self._store_path)
