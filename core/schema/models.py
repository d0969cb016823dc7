"""Data models for schema field extraction."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldDescriptor:
    """Flattened view of one node in a nested schema document."""

    path: str
    type: str
    depth: int

    @property
    def name(self) -> str:
        return self.path.rsplit(".", 1)[-1]

    @property
    def is_object(self) -> bool:
        return self.type == "object"
