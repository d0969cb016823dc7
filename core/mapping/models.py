"""Data models for mapping records, baseline snapshots and change sets."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TransformationKind = Literal["direct", "concatenate", "conditional", "custom"]
SegmentKind = Literal["text", "field"]


def new_mapping_id() -> str:
    """Return a fresh opaque mapping id."""

    return f"m_{uuid.uuid4().hex[:16]}"


class Segment(BaseModel):
    """One piece of a concatenation chain."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: SegmentKind
    value: str = ""


class MappingRecord(BaseModel):
    """One target <- source transformation rule plus its editable configuration.

    Rules:
    - id and is_new are fixed at creation time.
    - transformation decides which of source/sources/segments/condition are
      authoritative; source always holds the display value.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(default_factory=new_mapping_id, frozen=True)
    target: str = ""
    source: str = ""
    sources: list[str] = Field(default_factory=list)
    segments: list[Segment] = Field(default_factory=list)
    condition: str = ""
    transformation: TransformationKind = "direct"
    is_new: bool = Field(default=False, frozen=True)


@dataclass(frozen=True)
class BaselineSnapshot:
    """Versioned checkpoint of the mapping list used as the diff reference."""

    version: int = 0
    records: tuple[MappingRecord, ...] = ()

    @classmethod
    def capture(cls, records: list[MappingRecord], *, version: int) -> BaselineSnapshot:
        return cls(
            version=version,
            records=tuple(record.model_copy(deep=True) for record in records),
        )

    def ids(self) -> set[str]:
        return {record.id for record in self.records}


class ChangeSummary(BaseModel):
    """Aggregate counts of a change set."""

    model_config = ConfigDict(extra="forbid")

    added_count: int
    modified_count: int
    deleted_count: int
    unchanged_count: int


class ChangeSet(BaseModel):
    """Disjoint classification of the working model against the baseline."""

    model_config = ConfigDict(extra="forbid")

    added: list[MappingRecord] = Field(default_factory=list)
    modified: list[MappingRecord] = Field(default_factory=list)
    deleted: list[MappingRecord] = Field(default_factory=list)
    unchanged_count: int = 0
    baseline_version: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.deleted)

    def summary(self) -> ChangeSummary:
        return ChangeSummary(
            added_count=len(self.added),
            modified_count=len(self.modified),
            deleted_count=len(self.deleted),
            unchanged_count=self.unchanged_count,
        )
