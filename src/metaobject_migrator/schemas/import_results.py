"""Models for import run state and the persisted result summary."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .export_document import ExportDocument


class EntryStatus(str, Enum):
    """Per-entry completion state across both import phases."""

    PENDING = "pending"
    METAOBJECT_CREATED = "metaobject-created"
    BACKREFERENCES_PENDING = "backreferences-pending"
    BACKREFERENCES_COMPLETED = "backreferences-completed"
    FAILED = "failed"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class ImportReport(BaseModel):
    """Mutable state of one import run, owned by the importer."""

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    completion: dict[int, EntryStatus] = Field(default_factory=dict)
    errors: dict[int, str] = Field(default_factory=dict)
    created_ids: dict[int, str] = Field(default_factory=dict)
    backreference_errors: list[str] = Field(default_factory=list)

    def status_of(self, index: int) -> EntryStatus:
        return self.completion.get(index, EntryStatus.PENDING)

    def mark(self, index: int, status: EntryStatus) -> None:
        # failed is absorbing
        if self.completion.get(index) is EntryStatus.FAILED:
            return
        self.completion[index] = status

    def fail(self, index: int, error: str) -> None:
        self.completion[index] = EntryStatus.FAILED
        if index in self.errors:
            self.errors[index] = f"{self.errors[index]}; {error}"
        else:
            self.errors[index] = error

    def result_status(self, index: int) -> ResultStatus:
        status = self.status_of(index)
        if status is EntryStatus.FAILED:
            return ResultStatus.FAILED
        if status is EntryStatus.BACKREFERENCES_COMPLETED:
            return ResultStatus.SUCCESS
        return ResultStatus.PENDING

    @property
    def failed_indexes(self) -> list[int]:
        return sorted(
            i for i, status in self.completion.items() if status is EntryStatus.FAILED
        )


class ImportResultItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    index: int
    type: str
    handle: str
    status: ResultStatus
    completion_status: Optional[EntryStatus] = Field(None, alias="completionStatus")
    error: Optional[str] = None


class ImportSummary(BaseModel):
    """Result file written when an import run finishes."""

    model_config = ConfigDict(populate_by_name=True)

    environment: str
    started_at: str = Field(..., alias="startedAt")
    finished_at: str = Field(..., alias="finishedAt")
    count: int
    results: list[ImportResultItem]

    @classmethod
    def from_report(cls, document: ExportDocument, report: ImportReport) -> "ImportSummary":
        finished_at = report.finished_at or datetime.now(timezone.utc)
        results = [
            ImportResultItem(
                index=index,
                type=entry.type,
                handle=entry.handle,
                status=report.result_status(index),
                completion_status=report.completion.get(index),
                error=report.errors.get(index),
            )
            for index, entry in enumerate(document.entries)
        ]
        return cls(
            environment=document.environment or "unknown",
            started_at=report.started_at.isoformat(),
            finished_at=finished_at.isoformat(),
            count=len(document.entries),
            results=results,
        )
