"""Change set computation between the working model and its baseline."""

from __future__ import annotations

from collections.abc import Iterable

from core.mapping.models import BaselineSnapshot, ChangeSet, MappingRecord

_COMPARED_FIELDS = ("target", "source", "transformation")


def compute_changes(
    current: Iterable[MappingRecord],
    baseline: BaselineSnapshot | Iterable[MappingRecord],
) -> ChangeSet:
    """Classify records as added, modified or deleted.

    Rules:
    - added: records flagged is_new, plus records whose id the baseline lacks
    - modified: baseline ids whose target, source or transformation differ
    - deleted: baseline ids missing from the current list
    - condition/sources/segments edits count only through the synced source
    """

    if isinstance(baseline, BaselineSnapshot):
        version = baseline.version
        baseline_records = list(baseline.records)
    else:
        version = 0
        baseline_records = list(baseline)

    current_records = list(current)
    baseline_by_id = {record.id: record for record in baseline_records}
    current_ids = {record.id for record in current_records}

    added: list[MappingRecord] = []
    modified: list[MappingRecord] = []
    unchanged_count = 0

    for record in current_records:
        original = baseline_by_id.get(record.id)
        if record.is_new or original is None:
            added.append(record)
            continue
        if _differs(original, record):
            modified.append(record)
        else:
            unchanged_count += 1

    deleted = [record for record in baseline_records if record.id not in current_ids]

    return ChangeSet(
        added=added,
        modified=modified,
        deleted=deleted,
        unchanged_count=unchanged_count,
        baseline_version=version,
    )


def _differs(original: MappingRecord, record: MappingRecord) -> bool:
    return any(getattr(original, name) != getattr(record, name) for name in _COMPARED_FIELDS)
