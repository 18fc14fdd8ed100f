"""Unit tests for the export and import command-line scripts."""
import importlib.util
import json
import sys
from pathlib import Path

import pytest

from metaobject_migrator.migration.storage import write_export_document
from metaobject_migrator.schemas.export_document import ExportDocument, ExportEntry
from metaobject_migrator.schemas.import_results import EntryStatus, ImportReport
from metaobject_migrator.shopify.exceptions import ExportFailedError, ImportAbortedError


SCRIPTS_DIR = Path(__file__).resolve().parents[2] / "scripts"


def _load_script(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS_DIR / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("SHOPIFY_STORE_DOMAIN", "dest-shop.myshopify.com")
    monkeypatch.setenv("SHOPIFY_ADMIN_ACCESS_TOKEN", "shpat_test")
    monkeypatch.delenv("MIGRATOR_ENVIRONMENT", raising=False)
    monkeypatch.setenv("MIGRATOR_OUTPUT_DIR", str(tmp_path / "out"))
    return monkeypatch


async def _write_document(tmp_path):
    document = ExportDocument(
        environment="prod",
        entries=[ExportEntry(handle="a", type="item"), ExportEntry(handle="b", type="item")],
    )
    return await write_export_document(document, tmp_path / "exports", ["item"])


class AbortingImporter:
    """Stands in for MetaobjectImporter; the second entry aborts the run."""

    def __init__(self, client, **kwargs):
        self.kwargs = kwargs

    async def run_import(self, document):
        report = ImportReport()
        report.mark(0, EntryStatus.BACKREFERENCES_COMPLETED)
        report.fail(1, "Failed to upsert item/b: Value is invalid")
        raise ImportAbortedError("Failed to upsert item/b: Value is invalid", report)


@pytest.mark.asyncio
async def test_import_summary_written_when_run_aborts(env, tmp_path):
    document_path = await _write_document(tmp_path)
    run_import = _load_script("run_import")
    env.setattr(run_import, "MetaobjectImporter", AbortingImporter)
    env.setattr(sys, "argv", ["run_import.py", str(document_path)])

    assert await run_import.main() == 1

    (summary,) = (tmp_path / "out").glob("prod-import-results-*.json")
    data = json.loads(summary.read_text(encoding="utf-8"))
    assert [r["status"] for r in data["results"]] == ["success", "failed"]
    assert data["results"][1]["error"] == "Failed to upsert item/b: Value is invalid"


@pytest.mark.asyncio
async def test_import_out_of_range_index_writes_no_summary(env, tmp_path):
    document_path = await _write_document(tmp_path)

    class IndexCheckingImporter(AbortingImporter):
        async def run_import_one(self, document, index):
            raise IndexError(f"index {index} out of range for {len(document.entries)} entries")

    run_import = _load_script("run_import")
    env.setattr(run_import, "MetaobjectImporter", IndexCheckingImporter)
    env.setattr(sys, "argv", ["run_import.py", str(document_path), "--index", "5"])

    assert await run_import.main() == 1
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_import_unreadable_document(env, tmp_path):
    run_import = _load_script("run_import")
    env.setattr(sys, "argv", ["run_import.py", str(tmp_path / "missing.json")])

    assert await run_import.main() == 1


class FakeExporter:
    calls = []

    def __init__(self, client, page_size, on_progress=None):
        self.page_size = page_size

    async def run_export(self, environment, types, output_dir, retain_ids, include_back_references):
        FakeExporter.calls.append((environment, types, retain_ids, include_back_references))
        if "broken" in types:
            raise ExportFailedError("broken", RuntimeError("HTTP 502"))
        return output_dir / "prod-item.json"


@pytest.mark.asyncio
async def test_export_passes_options_and_reports_failure(env):
    run_export = _load_script("run_export")
    env.setattr(run_export, "MetaobjectExporter", FakeExporter)
    FakeExporter.calls.clear()

    env.setattr(
        sys,
        "argv",
        ["run_export.py", "--type", "item", "--type", "author", "--environment", "prod", "--retain-ids"],
    )
    assert await run_export.main() == 0

    env.setattr(sys, "argv", ["run_export.py", "--type", "broken", "--no-back-references"])
    assert await run_export.main() == 1

    assert FakeExporter.calls == [
        ("prod", ["item", "author"], True, True),
        ("default", ["broken"], False, False),
    ]
