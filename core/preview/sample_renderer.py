"""Dry-run preview of a mapping model against a sample input document.

Only the constructs the editor generates are evaluated: dotted field
lookups, concatenation chains and `<#if ...>` conditionals whose condition
is an existence check (`path??`) or a plain dotted path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from core.config.settings_loader import default_settings
from core.mapping.models import MappingRecord
from core.mapping.plugins import effective_condition
from core.templates.template_generator import build_tree

_PLAIN_PATH_RE = re.compile(r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")
_MISSING = object()


@dataclass(frozen=True)
class PreviewIssue:
    """A mapping that could not be fully evaluated."""

    mapping_id: str
    target: str
    code: str
    detail: str


@dataclass
class PreviewResult:
    """Rendered output tree plus evaluation issues."""

    output: dict[str, Any] = field(default_factory=dict)
    issues: list[PreviewIssue] = field(default_factory=list)


def render_preview(
    records: Iterable[MappingRecord],
    sample: Mapping[str, Any],
    *,
    else_text: str | None = None,
) -> PreviewResult:
    """Evaluate each mapping against `sample` and build the output tree."""

    result = PreviewResult()
    fallback = else_text if else_text is not None else default_settings().conditional_else_text

    def evaluate(record: MappingRecord) -> Any:
        return _evaluate(record, sample, result.issues, fallback)

    result.output = build_tree(records, value_for=evaluate)
    return result


def _resolve(sample: Mapping[str, Any], path: str) -> Any:
    node: Any = sample
    for key in path.split("."):
        if not isinstance(node, Mapping) or key not in node:
            return _MISSING
        node = node[key]
    return node


def _evaluate(
    record: MappingRecord,
    sample: Mapping[str, Any],
    issues: list[PreviewIssue],
    else_text: str,
) -> Any:
    kind = record.transformation

    if kind in {"direct", "custom"}:
        return _field_value(record, record.source, sample, issues)

    if kind == "concatenate":
        segments = record.segments
        if not segments and record.sources:
            parts = [_text(_field_value(record, path, sample, issues)) for path in record.sources]
            return " ".join(parts)
        if not segments:
            return _text(_field_value(record, record.source, sample, issues))
        return "".join(
            _text(_field_value(record, segment.value, sample, issues))
            if segment.kind == "field"
            else segment.value
            for segment in segments
        )

    if kind == "conditional":
        if _condition_holds(record, sample, issues):
            return _field_value(record, record.source, sample, issues)
        return else_text

    issues.append(
        PreviewIssue(
            mapping_id=record.id,
            target=record.target,
            code="unknown_transformation",
            detail=str(kind),
        )
    )
    return None


def _condition_holds(
    record: MappingRecord, sample: Mapping[str, Any], issues: list[PreviewIssue]
) -> bool:
    condition = effective_condition(record).strip()
    if condition.endswith("??"):
        path = condition[:-2].strip()
        if _PLAIN_PATH_RE.fullmatch(path):
            value = _resolve(sample, path)
            return value is not _MISSING and value is not None
    elif _PLAIN_PATH_RE.fullmatch(condition):
        value = _resolve(sample, condition)
        return value is not _MISSING and bool(value)

    issues.append(
        PreviewIssue(
            mapping_id=record.id,
            target=record.target,
            code="unsupported_expression",
            detail=condition,
        )
    )
    return False


def _field_value(
    record: MappingRecord, path: str, sample: Mapping[str, Any], issues: list[PreviewIssue]
) -> Any:
    if not _PLAIN_PATH_RE.fullmatch(path):
        issues.append(
            PreviewIssue(
                mapping_id=record.id,
                target=record.target,
                code="unsupported_expression",
                detail=path,
            )
        )
        return None

    value = _resolve(sample, path)
    if value is _MISSING:
        issues.append(
            PreviewIssue(
                mapping_id=record.id, target=record.target, code="missing_field", detail=path
            )
        )
        return None
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
