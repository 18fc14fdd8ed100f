"""Unit tests for export document and import summary files."""
import json
from datetime import datetime, timezone

import pytest

from metaobject_migrator.migration.storage import (
    export_file_name,
    read_export_document,
    write_export_document,
    write_import_summary,
)
from metaobject_migrator.schemas.export_document import ExportDocument, ExportEntry
from metaobject_migrator.schemas.import_results import EntryStatus, ImportReport


MOMENT = datetime(2026, 3, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)


def test_export_file_name():
    assert (
        export_file_name("prod", ["author", "$app:Swatch"], MOMENT)
        == "prod-author+_app_Swatch-2026-03-01T12-30-15-123000+00-00.json"
    )


@pytest.mark.asyncio
async def test_written_document_reads_back(tmp_path):
    document = ExportDocument(
        environment="prod",
        entries=[ExportEntry(handle="ann", type="author", fields={"name": "Ann"})],
    )

    path = await write_export_document(document, tmp_path / "out", ["author"])
    loaded, stats = await read_export_document(path)

    assert path.parent == tmp_path / "out"
    assert loaded == document
    assert stats.by_type == {"author": 1}


@pytest.mark.asyncio
async def test_import_summary_file(tmp_path):
    document = ExportDocument(
        environment="prod",
        entries=[
            ExportEntry(handle="a", type="item"),
            ExportEntry(handle="b", type="item"),
            ExportEntry(handle="c", type="item"),
        ],
    )
    report = ImportReport(started_at=MOMENT, finished_at=MOMENT)
    report.mark(0, EntryStatus.BACKREFERENCES_COMPLETED)
    report.fail(1, "Failed to upsert item/b: Value is invalid")

    path = await write_import_summary(document, report, tmp_path)

    assert path.name == "prod-import-results-2026-03-01T12-30-15-123000+00-00.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["environment"] == "prod"
    assert data["count"] == 3
    assert data["startedAt"] == MOMENT.isoformat()
    assert data["results"] == [
        {"index": 0, "type": "item", "handle": "a", "status": "success", "completionStatus": "backreferences-completed"},
        {
            "index": 1,
            "type": "item",
            "handle": "b",
            "status": "failed",
            "completionStatus": "failed",
            "error": "Failed to upsert item/b: Value is invalid",
        },
        {"index": 2, "type": "item", "handle": "c", "status": "pending"},
    ]
