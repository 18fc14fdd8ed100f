"""Progress records passed to observer callbacks."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass(frozen=True)
class ResolverProgress:
    """Snapshot emitted by the bulk resolver.

    ``phase`` is one of ``group-start``, ``group-complete`` or ``group-error``.
    Counters are cumulative for the resolver instance.
    """

    phase: str
    kind: str
    group: str
    size: int
    calls: int
    resolved: int
    failed: int
    group_resolved: int = 0
    group_failed: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class ExportProgress:
    phase: str  # fetch | write
    message: str
    count: Optional[int] = None
    total: Optional[int] = None
    current_type: Optional[str] = None


@dataclass(frozen=True)
class ImportProgress:
    """Snapshot emitted by the importer after each state change."""

    index: int
    total: int
    message: str
    entry_key: Optional[str] = None
    error: Optional[str] = None
    completion: dict[int, str] = field(default_factory=dict)


ResolverObserver = Callable[[ResolverProgress], None]
ExportObserver = Callable[[ExportProgress], None]
ImportObserver = Callable[[ImportProgress], None]
