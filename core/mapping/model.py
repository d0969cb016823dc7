"""In-memory mapping model with a baseline checkpoint for diffing."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from core.mapping import plugins
from core.mapping.models import BaselineSnapshot, MappingRecord, SegmentKind
from core.schema.models import FieldDescriptor
from core.utils.errors import GenerationError, MappingEditError, MappingNotFoundError

logger = logging.getLogger("ftlmap.core.mapping")

EDITABLE_FIELDS = frozenset(
    {"target", "source", "sources", "segments", "condition", "transformation"}
)


class MappingModel:
    """Ordered collection of mapping records plus the diff baseline.

    The baseline is replaced only by `replace_all`, `auto_map` and explicit
    `checkpoint` calls. Record ids are never reused.
    """

    def __init__(
        self,
        records: Iterable[MappingRecord] | None = None,
        *,
        baseline: BaselineSnapshot | None = None,
    ) -> None:
        self._records: list[MappingRecord] = list(records or [])
        self._baseline = baseline or BaselineSnapshot.capture(self._records, version=0)

    @property
    def records(self) -> list[MappingRecord]:
        return list(self._records)

    @property
    def baseline(self) -> BaselineSnapshot:
        return self._baseline

    def __len__(self) -> int:
        return len(self._records)

    def get(self, mapping_id: str) -> MappingRecord:
        return self._records[self._index_of(mapping_id)]

    def create(self, **fields: Any) -> MappingRecord:
        """Append a new user-created mapping (is_new=True)."""

        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise MappingEditError(f"Unsupported mapping fields: {sorted(unknown)}")

        if "sources" in fields and "segments" not in fields:
            fields["segments"] = plugins.segments_from_sources(list(fields["sources"]))

        try:
            record = MappingRecord(is_new=True, **fields)
        except ValidationError as exc:
            raise MappingEditError(f"Invalid mapping fields: {exc}") from exc

        record = plugins.sync_display_source(record)
        self._records.append(record)
        logger.debug("created mapping %s target=%s", record.id, record.target)
        return record

    def update(self, mapping_id: str, **changes: Any) -> MappingRecord:
        """Apply a partial edit; id and is_new never change."""

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise MappingEditError(f"Unsupported mapping fields: {sorted(unknown)}")

        index = self._index_of(mapping_id)
        record = self._records[index]

        kind = changes.pop("transformation", None)
        if kind is not None and kind != record.transformation:
            try:
                record = plugins.change_transformation(record, kind)
            except GenerationError as exc:
                raise MappingEditError(f"Invalid transformation: {kind}") from exc

        if "sources" in changes and "segments" not in changes:
            changes["segments"] = plugins.segments_from_sources(list(changes["sources"]))

        try:
            record = MappingRecord.model_validate(
                {**record.model_dump(), **_dump_changes(changes)}
            )
        except ValidationError as exc:
            raise MappingEditError(f"Invalid mapping fields: {exc}") from exc

        record = plugins.sync_display_source(record)
        self._records[index] = record
        return record

    def delete(self, mapping_id: str) -> MappingRecord:
        index = self._index_of(mapping_id)
        removed = self._records.pop(index)
        logger.debug("deleted mapping %s", mapping_id)
        return removed

    def append_segment(
        self, mapping_id: str, kind: SegmentKind, value: str | None = None
    ) -> MappingRecord:
        return self._apply(mapping_id, lambda record: plugins.append_segment(record, kind, value))

    def remove_segment(self, mapping_id: str, index: int) -> MappingRecord:
        return self._apply(mapping_id, lambda record: plugins.remove_segment(record, index))

    def replace_segment(
        self,
        mapping_id: str,
        index: int,
        *,
        kind: SegmentKind | None = None,
        value: str | None = None,
    ) -> MappingRecord:
        return self._apply(
            mapping_id,
            lambda record: plugins.replace_segment(record, index, kind=kind, value=value),
        )

    def replace_all(self, records: Iterable[MappingRecord]) -> None:
        """Replace the working list and reset the baseline to it."""

        self._records = list(records)
        self.checkpoint()

    def checkpoint(self) -> BaselineSnapshot:
        self._baseline = BaselineSnapshot.capture(
            self._records, version=self._baseline.version + 1
        )
        return self._baseline

    def auto_map(
        self,
        input_fields: Sequence[FieldDescriptor],
        output_fields: Sequence[FieldDescriptor],
    ) -> list[MappingRecord]:
        """Suggest direct mappings by name and reset the baseline.

        Matching per output leaf, first hit wins:
        1. full path, case-insensitive
        2. last path segment, case-insensitive
        3. last segment contained in the other, either direction
        """

        inputs = [item for item in input_fields if not item.is_object]
        records: list[MappingRecord] = []
        for output in output_fields:
            if output.is_object:
                continue
            match = _find_match(output, inputs)
            if match is None:
                continue
            records.append(
                MappingRecord(target=output.path, source=match.path, transformation="direct")
            )

        logger.debug(
            "auto-mapped %d of %d output leaves",
            len(records),
            sum(1 for item in output_fields if not item.is_object),
        )
        self.replace_all(records)
        return self.records

    def _apply(self, mapping_id: str, edit) -> MappingRecord:
        index = self._index_of(mapping_id)
        record = edit(self._records[index])
        self._records[index] = record
        return record

    def _index_of(self, mapping_id: str) -> int:
        for index, record in enumerate(self._records):
            if record.id == mapping_id:
                return index
        raise MappingNotFoundError(mapping_id)


def _dump_changes(changes: dict[str, Any]) -> dict[str, Any]:
    dumped: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "segments":
            dumped[key] = [
                item.model_dump() if hasattr(item, "model_dump") else item for item in value
            ]
        else:
            dumped[key] = value
    return dumped


def _find_match(
    output: FieldDescriptor, inputs: Sequence[FieldDescriptor]
) -> FieldDescriptor | None:
    output_path = output.path.lower()
    for candidate in inputs:
        if candidate.path.lower() == output_path:
            return candidate

    output_name = output.name.lower()
    for candidate in inputs:
        if candidate.name.lower() == output_name:
            return candidate

    if not output_name:
        return None
    for candidate in inputs:
        candidate_name = candidate.name.lower()
        if candidate_name and (candidate_name in output_name or output_name in candidate_name):
            return candidate
    return None
