"""Data models for template parsing."""

from __future__ import annotations

from dataclasses import dataclass, field

from core.mapping.models import MappingRecord


@dataclass(frozen=True)
class SkippedLine:
    """A leaf or inline-object template line that did not produce a mapping."""

    line_no: int
    text: str
    reason: str


@dataclass
class ParseResult:
    """Template parsing output."""

    mappings: list[MappingRecord] = field(default_factory=list)
    skipped: list[SkippedLine] = field(default_factory=list)
