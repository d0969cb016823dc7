"""Schema field extraction over nested JSON-like documents.

Rules:
- Output is depth-first pre-order in insertion order.
- Every object node and every leaf yields exactly one descriptor.
- Arrays are opaque leaves and are never traversed.
- String leaves naming a known type alias keep that alias as their type.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from core.config.settings_loader import default_settings
from core.schema.models import FieldDescriptor
from core.utils.errors import SchemaParseError

logger = logging.getLogger("ftlmap.core.schema")


def extract_fields(
    document: Any,
    *,
    type_aliases: Iterable[str] | None = None,
    max_depth: int | None = None,
) -> list[FieldDescriptor]:
    """Flatten a schema document into field descriptors.

    Args:
        document: Parsed schema; anything but a mapping yields an empty list.
        type_aliases: Type names recognised verbatim in string leaves.
        max_depth: Maximum nesting depth traversed; deeper nodes are dropped.

    Returns:
        Ordered list of FieldDescriptor with unique paths.
    """

    if not isinstance(document, Mapping):
        return []

    settings = default_settings()
    aliases = frozenset(type_aliases if type_aliases is not None else settings.type_aliases)
    depth_limit = max_depth if max_depth is not None else settings.max_schema_depth

    seen: set[str] = set()
    fields = list(_walk(document, "", aliases, depth_limit, frozenset({id(document)}), seen))
    logger.debug("extracted %d schema fields", len(fields))
    return fields


def leaf_fields(fields: Iterable[FieldDescriptor]) -> list[FieldDescriptor]:
    """Return non-object descriptors in their original order."""

    return [item for item in fields if not item.is_object]


def load_schema_text(text: str) -> dict[str, Any]:
    """Parse schema JSON text, raising SchemaParseError on invalid input."""

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaParseError(
            f"Invalid schema JSON: {exc.msg}", line=exc.lineno, column=exc.colno
        ) from exc
    except RecursionError as exc:
        raise SchemaParseError("Invalid schema JSON: nesting too deep") from exc

    if not isinstance(raw, dict):
        raise SchemaParseError("Schema JSON must be an object")
    return raw


def _walk(
    node: Mapping[Any, Any],
    prefix: str,
    aliases: frozenset[str],
    depth_limit: int,
    ancestors: frozenset[int],
    seen: set[str],
) -> Iterator[FieldDescriptor]:
    for key, value in node.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if path in seen:
            # Dotted keys can spell the same path as a nested object.
            logger.warning("duplicate schema path skipped at %s", path)
            continue
        seen.add(path)
        depth = path.count(".")
        if depth >= depth_limit:
            logger.warning("schema depth limit reached at %s", path)
            continue

        if isinstance(value, Mapping):
            if id(value) in ancestors:
                logger.warning("circular schema reference skipped at %s", path)
                continue
            yield FieldDescriptor(path=path, type="object", depth=depth)
            yield from _walk(value, path, aliases, depth_limit, ancestors | {id(value)}, seen)
            continue

        yield FieldDescriptor(path=path, type=_leaf_type(value, aliases), depth=depth)


def _leaf_type(value: Any, aliases: frozenset[str]) -> str:
    if isinstance(value, str):
        return value if value in aliases else "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if value is None:
        return "null"
    if isinstance(value, list | tuple):
        return "array"
    return type(value).__name__
