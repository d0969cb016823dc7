"""Human-readable summaries for CLI output."""

from __future__ import annotations

from collections import Counter

from core.mapping.models import ChangeSet, MappingRecord
from core.preview.sample_renderer import PreviewResult
from core.schema.models import FieldDescriptor


def render_fields(fields: list[FieldDescriptor], *, leaves_only: bool = False) -> str:
    """Render an indented field tree, one field per line."""

    lines: list[str] = []
    for item in fields:
        if leaves_only and item.is_object:
            continue
        lines.append(f"{'  ' * item.depth}{item.path} ({item.type})")
    leaf_count = sum(1 for item in fields if not item.is_object)
    lines.append(f"fields: {leaf_count} leaves, {len(fields) - leaf_count} objects")
    return "\n".join(lines)


def render_mapping_line(record: MappingRecord) -> str:
    marker = "+" if record.is_new else " "
    return f"{marker} {record.id} {record.target} <- {record.source} [{record.transformation}]"


def render_change_summary(changes: ChangeSet) -> str:
    """Render one-screen change summary."""

    lines: list[str] = ["change_summary:"]
    summary = changes.summary()
    lines.append(
        f"baseline_version={changes.baseline_version} "
        f"added={summary.added_count} modified={summary.modified_count} "
        f"deleted={summary.deleted_count} unchanged={summary.unchanged_count}"
    )

    if not changes.has_changes:
        lines.append("changes: none")
        return "\n".join(lines)

    kinds: Counter[str] = Counter(
        record.transformation for record in [*changes.added, *changes.modified]
    )
    if kinds:
        kinds_text = ", ".join(f"{kind}={kinds[kind]}" for kind in sorted(kinds))
        lines.append(f"touched_kinds: {kinds_text}")

    for label, records in (
        ("added", changes.added),
        ("modified", changes.modified),
        ("deleted", changes.deleted),
    ):
        for record in records:
            lines.append(f"{label}: {record.target} <- {record.source} [{record.transformation}]")
    return "\n".join(lines)


def render_preview_issues(result: PreviewResult) -> str:
    if not result.issues:
        return "preview_issues: none"
    counter: Counter[str] = Counter(issue.code for issue in result.issues)
    return "preview_issues: " + ", ".join(f"{code}={counter[code]}" for code in sorted(counter))
