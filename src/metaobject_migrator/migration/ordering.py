"""Dependency ordering of exported metaobject entries."""
import heapq
from typing import Iterable, Mapping

from ..schemas.export_document import ExportEntry
from .references import RefKind, format_handle_ref


def entry_ref(entry: ExportEntry) -> str:
    """Metaobject handle reference naming ``entry``."""
    return format_handle_ref(RefKind.METAOBJECT, entry.type, entry.handle)


def order_entries(
    entries: list[ExportEntry],
    dependencies: Mapping[int, Iterable[str]],
) -> list[ExportEntry]:
    """Order entries so a metaobject follows the metaobjects it references.

    Kahn's algorithm over Metaobject -> Metaobject edges only, ties broken by
    original position. Entries caught in a cycle, or waiting on a dependency
    that is not part of ``entries``, are appended afterwards in their
    original order.

    Args:
        entries: Entries in fetch order
        dependencies: Entry index -> handle references the entry contains
    """
    indexes_by_ref: dict[str, list[int]] = {}
    for index, entry in enumerate(entries):
        indexes_by_ref.setdefault(entry_ref(entry), []).append(index)

    in_degree = [0] * len(entries)
    dependents: list[list[int]] = [[] for _ in entries]
    blocked: set[int] = set()
    metaobject_prefix = format_handle_ref(RefKind.METAOBJECT, "")

    for index, refs in dependencies.items():
        for ref in set(refs):
            if not ref.startswith(metaobject_prefix):
                continue
            targets = indexes_by_ref.get(ref)
            if not targets:
                # external reference: never satisfiable inside this document
                blocked.add(index)
                continue
            for target in targets:
                if target == index:
                    continue
                dependents[target].append(index)
                in_degree[index] += 1

    ready = [i for i in range(len(entries)) if in_degree[i] == 0 and i not in blocked]
    heapq.heapify(ready)

    ordered: list[int] = []
    while ready:
        index = heapq.heappop(ready)
        ordered.append(index)
        for dependent in dependents[index]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0 and dependent not in blocked:
                heapq.heappush(ready, dependent)

    placed = set(ordered)
    leftovers = [i for i in range(len(entries)) if i not in placed]
    return [entries[i] for i in ordered + leftovers]
