"""Template generation from mapping records (inverse of the parser)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from core.config.settings_loader import default_settings
from core.mapping.models import MappingRecord
from core.mapping.plugins import generate_fragment
from core.utils.errors import GenerationError

logger = logging.getLogger("ftlmap.core.templates")

ERROR_TOKEN_FORMAT = "ERROR(unknown transformation: {kind})"

Tree = dict[str, Any]


def build_tree(
    records: Iterable[MappingRecord],
    value_for: Callable[[MappingRecord], Any] | None = None,
) -> Tree:
    """Insert records into a nested mapping keyed by target path segments.

    Conflicts between leaves and objects are last-write-wins; a replaced key
    keeps the position of its first insertion.
    """

    render = value_for or fragment_or_error
    tree: Tree = {}
    for record in records:
        if not record.target.strip():
            logger.warning("skipping mapping %s with empty target", record.id)
            continue

        *parents, leaf = record.target.split(".")
        node = tree
        for key in parents:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[leaf] = render(record)
    return tree


def fragment_or_error(record: MappingRecord, *, else_text: str | None = None) -> str:
    """Generate a fragment, substituting a visible token for unknown kinds."""

    try:
        return generate_fragment(record, else_text=else_text)
    except GenerationError as exc:
        logger.warning(
            "generation failed for mapping %s: %s", exc.mapping_id or record.id, exc
        )
        return ERROR_TOKEN_FORMAT.format(kind=exc.transformation)


def generate_template(
    records: Iterable[MappingRecord],
    *,
    indent: int | None = None,
    else_text: str | None = None,
) -> str:
    """Render records to JSON-shaped template text."""

    settings = default_settings()
    step = indent if indent is not None else settings.indent
    fallback = else_text if else_text is not None else settings.conditional_else_text

    def render(record: MappingRecord) -> str:
        return fragment_or_error(record, else_text=fallback)

    lines = ["{"]
    lines.extend(_serialize_entries(build_tree(records, value_for=render), level=1, step=step))
    lines.append("}")
    return "\n".join(lines)


def _serialize_entries(tree: Tree, *, level: int, step: int) -> list[str]:
    pad = " " * (step * level)
    lines: list[str] = []
    items = list(tree.items())
    for position, (key, value) in enumerate(items):
        comma = "," if position < len(items) - 1 else ""
        if isinstance(value, dict):
            if not value:
                lines.append(f'{pad}"{key}": {{}}{comma}')
                continue
            lines.append(f'{pad}"{key}": {{')
            lines.extend(_serialize_entries(value, level=level + 1, step=step))
            lines.append(f"{pad}}}{comma}")
        else:
            lines.append(f'{pad}"{key}": "{value}"{comma}')
    return lines
