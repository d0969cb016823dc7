"""Transformation plugins: code generation and editing contracts per kind."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import get_args

from core.config.settings_loader import default_settings
from core.mapping.models import MappingRecord, Segment, SegmentKind, TransformationKind
from core.utils.errors import GenerationError, MappingEditError

Generator = Callable[[MappingRecord, str], str]


@dataclass(frozen=True)
class TransformationPlugin:
    """Contract for one transformation kind."""

    id: str
    label: str
    edit_fields: frozenset[str]
    generate: Generator


def placeholder(expression: str) -> str:
    return "${" + expression + "}"


def render_segments(segments: list[Segment]) -> str:
    """Render a concatenation chain to template text."""

    return "".join(
        placeholder(segment.value) if segment.kind == "field" else segment.value
        for segment in segments
    )


def effective_condition(record: MappingRecord) -> str:
    """Return the condition used at generation time (existence check by default)."""

    return record.condition or f"{record.source}??"


def _generate_direct(record: MappingRecord, else_text: str) -> str:
    return placeholder(record.source)


def _generate_concatenate(record: MappingRecord, else_text: str) -> str:
    if record.segments:
        return render_segments(record.segments)
    if record.sources:
        return " ".join(placeholder(source) for source in record.sources)
    return placeholder(record.source)


def _generate_conditional(record: MappingRecord, else_text: str) -> str:
    return (
        f"<#if {effective_condition(record)}>{placeholder(record.source)}"
        f"<#else>{else_text}</#if>"
    )


def _generate_custom(record: MappingRecord, else_text: str) -> str:
    # The source holds the expression body; it is always wrapped.
    return placeholder(record.source)


TRANSFORMATION_PLUGINS: Mapping[str, TransformationPlugin] = MappingProxyType(
    {
        "direct": TransformationPlugin(
            id="direct",
            label="Direct Map",
            edit_fields=frozenset({"source"}),
            generate=_generate_direct,
        ),
        "concatenate": TransformationPlugin(
            id="concatenate",
            label="Concatenate (Chain)",
            edit_fields=frozenset({"segments", "sources"}),
            generate=_generate_concatenate,
        ),
        "conditional": TransformationPlugin(
            id="conditional",
            label="Conditional",
            edit_fields=frozenset({"source", "condition"}),
            generate=_generate_conditional,
        ),
        "custom": TransformationPlugin(
            id="custom",
            label="Custom Script",
            edit_fields=frozenset({"source"}),
            generate=_generate_custom,
        ),
    }
)


def get_plugin(kind: str) -> TransformationPlugin:
    """Resolve a plugin by transformation kind."""

    try:
        return TRANSFORMATION_PLUGINS[kind]
    except KeyError as exc:
        raise GenerationError(f"Unknown transformation: {kind}", transformation=kind) from exc


def list_transformations() -> list[str]:
    """Return supported transformation kinds in registry order."""

    return list(TRANSFORMATION_PLUGINS)


def generate_fragment(record: MappingRecord, *, else_text: str | None = None) -> str:
    """Generate the template fragment for one mapping record.

    `else_text` fills the `<#else>` branch of conditionals; it defaults to
    the configured `conditional_else_text`.
    """

    try:
        plugin = get_plugin(record.transformation)
    except GenerationError as exc:
        exc.mapping_id = record.id
        raise
    if else_text is None:
        else_text = default_settings().conditional_else_text
    return plugin.generate(record, else_text)


# Editing contract helpers. Each returns a new record and leaves the input untouched.


def segments_from_sources(sources: list[str]) -> list[Segment]:
    """Build a chain from plain field paths joined by single spaces."""

    segments: list[Segment] = []
    for index, source in enumerate(sources):
        if index:
            segments.append(Segment(kind="text", value=" "))
        segments.append(Segment(kind="field", value=source))
    return segments


def sync_display_source(record: MappingRecord) -> MappingRecord:
    """Recompute derived concatenate fields from the authoritative chain."""

    if record.transformation != "concatenate":
        return record

    segments = list(record.segments)
    if not segments and record.sources:
        segments = segments_from_sources(record.sources)

    if not segments:
        return record

    return record.model_copy(
        update={
            "segments": segments,
            "sources": [segment.value for segment in segments if segment.kind == "field"],
            "source": render_segments(segments),
        }
    )


def append_segment(record: MappingRecord, kind: SegmentKind, value: str | None = None) -> MappingRecord:
    """Append a segment; text segments default to a single space."""

    _require_concatenate(record)
    if value is None:
        value = " " if kind == "text" else ""
    segments = [*_chain(record), Segment(kind=kind, value=value)]
    return sync_display_source(record.model_copy(update={"segments": segments}))


def remove_segment(record: MappingRecord, index: int) -> MappingRecord:
    _require_concatenate(record)
    segments = _chain(record)
    _check_index(segments, index)
    del segments[index]
    updated = record.model_copy(update={"segments": segments})
    if not segments:
        updated = updated.model_copy(update={"sources": [], "source": ""})
    return sync_display_source(updated)


def replace_segment(
    record: MappingRecord, index: int, *, kind: SegmentKind | None = None, value: str | None = None
) -> MappingRecord:
    _require_concatenate(record)
    segments = _chain(record)
    _check_index(segments, index)
    current = segments[index]
    segments[index] = Segment(
        kind=kind if kind is not None else current.kind,
        value=value if value is not None else current.value,
    )
    return sync_display_source(record.model_copy(update={"segments": segments}))


def change_transformation(record: MappingRecord, kind: TransformationKind) -> MappingRecord:
    """Switch kinds, re-seeding the new kind's fields from the old ones."""

    get_plugin(kind)
    if kind == record.transformation:
        return record

    if kind == "concatenate":
        segments = [Segment(kind="field", value=record.source)] if record.source else []
        seeded = record.model_copy(update={"transformation": kind, "segments": segments})
        return sync_display_source(seeded)

    if record.transformation == "concatenate":
        fields = [segment.value for segment in _chain(record) if segment.kind == "field"]
        return record.model_copy(
            update={"transformation": kind, "source": fields[0] if fields else ""}
        )

    return record.model_copy(update={"transformation": kind})


def _chain(record: MappingRecord) -> list[Segment]:
    if record.segments:
        return list(record.segments)
    return segments_from_sources(record.sources)


def _require_concatenate(record: MappingRecord) -> None:
    if record.transformation != "concatenate":
        raise MappingEditError(
            f"Segments can only be edited on concatenate mappings, got {record.transformation}"
        )


def _check_index(segments: list[Segment], index: int) -> None:
    if not 0 <= index < len(segments):
        raise MappingEditError(f"Segment index out of range: {index}")


def _assert_registry_alignment() -> None:
    """Fail fast when the registry diverges from the transformation kinds."""

    kinds = set(get_args(TransformationKind))
    registered = set(TRANSFORMATION_PLUGINS)
    if kinds != registered:
        raise RuntimeError(
            "Transformation registry keys must match TransformationKind: "
            f"kinds={sorted(kinds)}, registered={sorted(registered)}"
        )


_assert_registry_alignment()
