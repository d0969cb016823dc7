"""Line-oriented parser turning JSON-shaped FreeMarker templates into mappings.

Supported input contract:
- One key per line; objects open with `"key": {` and close with `}` or `},`.
- `"key": {}` on one line is an empty object and produces nothing.
- Objects with content opened and closed on one line are reported as skipped.
- Leaf values are single-line strings without escaped quotes.
- Lines matching none of the above are ignored.
"""

from __future__ import annotations

import logging
import re

from core.config.settings_loader import default_settings
from core.mapping.models import MappingRecord, Segment
from core.mapping.plugins import render_segments
from core.templates.models import ParseResult, SkippedLine
from core.utils.errors import InputLimitError

logger = logging.getLogger("ftlmap.core.templates")

_EMPTY_OBJECT_RE = re.compile(r'^"([^"]+)"\s*:\s*\{\s*\}\s*,?$')
_INLINE_OBJECT_RE = re.compile(r'^"([^"]+)"\s*:\s*\{.*\}\s*,?$')
_OBJECT_OPEN_RE = re.compile(r'^"([^"]+)"\s*:\s*\{')
_LEAF_RE = re.compile(r'^"([^"]+)"\s*:\s*"(.*)"')
_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")
_CONDITION_RE = re.compile(r"<#if\s+([^>]+)>")
_CLOSING_LINES = frozenset({"}", "},"})


def parse_template(
    text: str,
    *,
    max_lines: int | None = None,
    max_depth: int | None = None,
) -> ParseResult:
    """Reconstruct mapping records from template text.

    Args:
        text: Raw template content.
        max_lines: Upper bound on scanned lines; exceeding it raises InputLimitError.
        max_depth: Leaves nested deeper than this are skipped.

    Returns:
        ParseResult with mappings in first-seen order and skipped leaf lines.
    """

    settings = default_settings()
    line_limit = max_lines if max_lines is not None else settings.max_template_lines
    depth_limit = max_depth if max_depth is not None else settings.max_nesting_depth

    lines = text.splitlines()
    if len(lines) > line_limit:
        raise InputLimitError(
            f"Template has {len(lines)} lines, limit is {line_limit}",
            limit=line_limit,
            actual=len(lines),
        )

    result = ParseResult()
    path_stack: list[str] = []

    for line_no, line in enumerate(lines, start=1):
        trimmed = line.strip()
        if not trimmed:
            continue

        if _EMPTY_OBJECT_RE.match(trimmed):
            continue

        if _INLINE_OBJECT_RE.match(trimmed):
            result.skipped.append(
                SkippedLine(line_no=line_no, text=trimmed, reason="inline_object")
            )
            continue

        object_match = _OBJECT_OPEN_RE.match(trimmed)
        if object_match:
            path_stack.append(object_match.group(1))
            continue

        if trimmed in _CLOSING_LINES:
            if path_stack:
                path_stack.pop()
            continue

        leaf_match = _LEAF_RE.match(trimmed)
        if leaf_match is None:
            continue

        if len(path_stack) >= depth_limit:
            result.skipped.append(SkippedLine(line_no=line_no, text=trimmed, reason="max_depth"))
            continue

        target = ".".join([*path_stack, leaf_match.group(1)])
        record = _parse_leaf(target, _clean_value(leaf_match.group(2)))
        if record is None:
            result.skipped.append(
                SkippedLine(line_no=line_no, text=trimmed, reason="no_placeholder")
            )
            continue
        result.mappings.append(record)

    logger.debug(
        "parsed %d mappings, skipped %d lines", len(result.mappings), len(result.skipped)
    )
    return result


def tokenize_value(value: str) -> list[Segment]:
    """Split a value into alternating text and field segments."""

    segments: list[Segment] = []
    cursor = 0
    for match in _PLACEHOLDER_RE.finditer(value):
        if match.start() > cursor:
            segments.append(Segment(kind="text", value=value[cursor : match.start()]))
        segments.append(Segment(kind="field", value=match.group(1)))
        cursor = match.end()
    if cursor < len(value):
        segments.append(Segment(kind="text", value=value[cursor:]))
    return segments


def _clean_value(raw_value: str) -> str:
    if raw_value.endswith(","):
        raw_value = raw_value[:-1]
    if raw_value.endswith('"'):
        raw_value = raw_value[:-1]
    return raw_value


def _parse_leaf(target: str, value: str) -> MappingRecord | None:
    if "<#if" in value:
        return _parse_conditional(target, value)

    segments = tokenize_value(value)
    fields = [segment.value for segment in segments if segment.kind == "field"]
    if not fields:
        return None

    if len(segments) == 1:
        return MappingRecord(
            target=target,
            source=fields[0],
            sources=fields,
            segments=segments,
            transformation="direct",
        )

    return MappingRecord(
        target=target,
        source=render_segments(segments),
        sources=fields,
        segments=segments,
        transformation="concatenate",
    )


def _parse_conditional(target: str, value: str) -> MappingRecord:
    condition_match = _CONDITION_RE.search(value)
    condition = condition_match.group(1).strip() if condition_match else ""
    body_start = condition_match.end() if condition_match else 0

    source_match = _PLACEHOLDER_RE.search(value, body_start) or _PLACEHOLDER_RE.search(value)
    return MappingRecord(
        target=target,
        source=source_match.group(1) if source_match else "",
        condition=condition,
        transformation="conditional",
    )
