"""Persistence of export documents and import summaries."""
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from ..schemas.export_document import ExportDocument, ExportStats, parse_export_document
from ..schemas.import_results import ImportReport, ImportSummary


logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._+-]")


def _timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return re.sub(r"[:.]", "-", moment.isoformat())


def _safe(name: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


def export_file_name(environment: str, types: list[str], moment: Optional[datetime] = None) -> str:
    base = "+".join(types)
    return _safe(f"{environment}-{base}-{_timestamp(moment)}") + ".json"


async def write_export_document(
    document: ExportDocument, output_dir: Path, types: list[str]
) -> Path:
    """Write ``document`` to ``<output_dir>/<env>-<types>-<timestamp>.json``."""
    await aiofiles.os.makedirs(output_dir, exist_ok=True)
    path = Path(output_dir) / export_file_name(document.environment or "unknown", types)
    async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
        await f.write(document.to_json())
    return path


async def read_export_document(path: Path) -> tuple[ExportDocument, ExportStats]:
    async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
        text = await f.read()
    return parse_export_document(text)


async def write_import_summary(
    document: ExportDocument, report: ImportReport, output_dir: Path
) -> Path:
    """Write the import result summary next to the export documents."""
    summary = ImportSummary.from_report(document, report)
    await aiofiles.os.makedirs(output_dir, exist_ok=True)
    file_name = _safe(
        f"{summary.environment}-import-results-{_timestamp(report.finished_at)}"
    ) + ".json"
    path = Path(output_dir) / file_name
    async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
        await f.write(
            json.dumps(
                summary.model_dump(by_alias=True, mode="json", exclude_none=True),
                indent=2,
                ensure_ascii=False,
            )
        )
    logger.info("Wrote import summary to %s", path)
    return path
