"""Field value handling for import: reference scanning, resolution, wire form.

Field values are JSON-like trees (scalars, lists, dicts). A string may be a
handle reference, or JSON text that itself holds references; such text is
parsed, transformed and written back out as JSON.
"""
import asyncio
import json
from typing import Any

from .references import parse_symbolic_ref
from .resolver import BulkHandleResolver


# Marker for a value removed because its reference did not resolve
DROP = object()
_UNPARSED = object()


def _try_parse_json(text: str) -> Any:
    if not text.startswith(("[", "{")):
        return _UNPARSED
    try:
        parsed = json.loads(text)
    except ValueError:
        return _UNPARSED
    if not isinstance(parsed, (list, dict)):
        return _UNPARSED
    return parsed


def _is_dropped(value: Any) -> bool:
    return value is DROP or (isinstance(value, list) and not value)


def collect_handle_refs(value: Any) -> list[str]:
    """Every distinct handle reference inside ``value``, in first-seen order."""
    found: dict[str, None] = {}

    def walk(node: Any) -> None:
        if isinstance(node, str):
            if parse_symbolic_ref(node) is not None:
                found[node] = None
                return
            parsed = _try_parse_json(node)
            if parsed is not _UNPARSED:
                walk(parsed)
        elif isinstance(node, list):
            for item in node:
                walk(item)
        elif isinstance(node, dict):
            for item in node.values():
                walk(item)

    walk(value)
    return list(found)


async def transform_value(value: Any, resolver: BulkHandleResolver) -> Any:
    """Replace handle references in ``value`` with destination GIDs.

    Unresolved references become ``DROP``. Strings that merely look like
    references but do not parse are kept as text. Lists and dicts lose
    dropped members and emptied lists, and a dict left empty is itself
    dropped.
    """
    if isinstance(value, str):
        if parse_symbolic_ref(value) is not None:
            gid = await resolver.resolve(value)
            return gid if gid else DROP
        parsed = _try_parse_json(value)
        if parsed is not _UNPARSED:
            return await transform_value(parsed, resolver)
        return value

    if isinstance(value, list):
        items = await asyncio.gather(*(transform_value(v, resolver) for v in value))
        return [item for item in items if not _is_dropped(item)]

    if isinstance(value, dict):
        keys = list(value)
        items = await asyncio.gather(*(transform_value(value[k], resolver) for k in keys))
        out = {k: item for k, item in zip(keys, items) if not _is_dropped(item)}
        return out if out else DROP

    return value


async def transform_fields(
    fields: dict[str, Any], resolver: BulkHandleResolver
) -> dict[str, Any]:
    """Transform a field map, omitting fields that end up dropped or empty."""
    keys = list(fields)
    values = await asyncio.gather(*(transform_value(fields[k], resolver) for k in keys))
    return {k: v for k, v in zip(keys, values) if not _is_dropped(v)}


def serialize_field(value: Any) -> str:
    """Wire form of a field value for metaobjectUpsert."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)
