"""FastAPI routes for export and import job submission."""
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiohttp
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field
from redis.asyncio import Redis

from ..config import MigratorSettings, load_settings
from ..migration.exporter import MetaobjectExporter
from ..migration.importer import MetaobjectImporter
from ..migration.storage import read_export_document, write_import_summary
from ..shopify.client import ShopifyGraphQLClient
from ..shopify.exceptions import ImportAbortedError
from .auth import require_api_key


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["jobs"])


class ExportJobRequest(BaseModel):
    """Request payload for an export job."""

    shop_domain: str = Field(
        ..., description="Source Shopify store domain (must match configured store)"
    )
    types: list[str] = Field(..., description="Metaobject types to export (non-empty)")
    environment: Optional[str] = Field(
        None, description="Environment label; defaults to MIGRATOR_ENVIRONMENT"
    )
    retain_ids: bool = Field(
        False, description="Keep raw GIDs instead of portable handle references"
    )
    include_back_references: bool = Field(
        True, description="Record metafields on other resources pointing at entries"
    )


class ImportJobRequest(BaseModel):
    """Request payload for an import job."""

    shop_domain: str = Field(
        ..., description="Destination Shopify store domain (must match configured store)"
    )
    file_name: str = Field(
        ..., description="Export document file name inside the output directory"
    )
    skip_on_error: bool = Field(
        False, description="Record failing entries and continue instead of aborting"
    )
    index: Optional[int] = Field(
        None, ge=0, description="Import only the entry at this position"
    )


class JobResponse(BaseModel):
    """Immediate response for a queued job."""

    job_id: str = Field(..., description="Server-generated job ID")
    status: str = Field(..., description="Job status (always 'queued' on acceptance)")
    kind: str = Field(..., description="export or import")


def _check_shop_domain(shop_domain: str) -> None:
    configured_store = os.getenv("SHOPIFY_STORE_DOMAIN")
    if not configured_store:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="SHOPIFY_STORE_DOMAIN is not configured",
        )

    if shop_domain != configured_store:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"shop_domain mismatch: expected '{configured_store}', "
                f"got '{shop_domain}'"
            ),
        )


def _client_timeout() -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(total=300, connect=30)


async def _run_export_job(job_id: str, payload: ExportJobRequest) -> None:
    """Background task: export the requested types to the output directory.

    Exception-safe; all errors are caught and logged.
    """
    try:
        settings = load_settings()
        environment = payload.environment or settings.environment
        logger.info(
            "Starting export job: job_id=%s, types=%s, retain_ids=%s",
            job_id,
            payload.types,
            payload.retain_ids,
        )

        async with aiohttp.ClientSession(timeout=_client_timeout()) as session:
            client = ShopifyGraphQLClient.from_settings(settings, session)
            exporter = MetaobjectExporter(client, page_size=settings.page_size)
            path = await exporter.run_export(
                environment,
                payload.types,
                settings.output_dir,
                retain_ids=payload.retain_ids,
                include_back_references=payload.include_back_references,
            )

        logger.info("Export job %s completed: %s", job_id, path)

    except Exception as exc:
        logger.error(
            "Export job %s failed with exception: %s", job_id, exc, exc_info=True
        )


async def _run_import(
    settings: MigratorSettings, payload: ImportJobRequest, redis: Optional[Redis]
) -> None:
    document, stats = await read_export_document(settings.output_dir / payload.file_name)
    logger.info("Loaded %s entries by type: %s", stats.total, stats.by_type)

    async with aiohttp.ClientSession(timeout=_client_timeout()) as session:
        client = ShopifyGraphQLClient.from_settings(settings, session)
        importer = MetaobjectImporter(
            client,
            skip_on_error=payload.skip_on_error,
            chunk_size=settings.backref_chunk_size,
            resolve_chunk_size=settings.resolve_chunk_size,
            redis=redis,
        )
        try:
            if payload.index is None:
                report = await importer.run_import(document)
            else:
                report = await importer.run_import_one(document, payload.index)
        except ImportAbortedError as exc:
            await write_import_summary(document, exc.report, settings.output_dir)
            raise

    summary_path = await write_import_summary(document, report, settings.output_dir)
    logger.info(
        "Import finished: failed=%s, summary=%s", report.failed_indexes, summary_path
    )


async def _run_import_job(job_id: str, payload: ImportJobRequest) -> None:
    """Background task: import an export document into the configured store.

    Exception-safe; all errors are caught and logged.
    """
    try:
        settings = load_settings()
        logger.info(
            "Starting import job: job_id=%s, file=%s, skip_on_error=%s, index=%s",
            job_id,
            payload.file_name,
            payload.skip_on_error,
            payload.index,
        )

        redis = (
            Redis.from_url(settings.redis_url, decode_responses=False)
            if settings.redis_url
            else None
        )
        try:
            await _run_import(settings, payload, redis)
        finally:
            if redis is not None:
                await redis.aclose()

        logger.info("Import job %s completed", job_id)

    except Exception as exc:
        logger.error(
            "Import job %s failed with exception: %s", job_id, exc, exc_info=True
        )


@router.post(
    "/jobs/export",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_api_key)],
    summary="Submit metaobject export job",
    description=(
        "Enqueue an export of the given metaobject types. "
        "Returns immediately (202 Accepted) with job_id; the document is "
        "written to the output directory when the job finishes."
    ),
)
async def create_export_job(
    payload: ExportJobRequest,
    background_tasks: BackgroundTasks,
) -> JobResponse:
    """Validate the shop domain and a non-empty type list, then queue."""
    _check_shop_domain(payload.shop_domain)

    types = [t for t in payload.types if t.strip()]
    if not types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="types must be non-empty",
        )
    payload.types = types

    job_id = str(uuid.uuid4())
    background_tasks.add_task(_run_export_job, job_id, payload)
    logger.info("Queued export job: job_id=%s, types=%s", job_id, types)

    return JobResponse(job_id=job_id, status="queued", kind="export")


@router.post(
    "/jobs/import",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_api_key)],
    summary="Submit metaobject import job",
    description=(
        "Enqueue an import of an export document from the output directory. "
        "Returns immediately (202 Accepted) with job_id; a result summary is "
        "written next to the document when the job finishes."
    ),
)
async def create_import_job(
    payload: ImportJobRequest,
    background_tasks: BackgroundTasks,
) -> JobResponse:
    """Validate the shop domain and document name, then queue."""
    _check_shop_domain(payload.shop_domain)

    if not payload.file_name or Path(payload.file_name).name != payload.file_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="file_name must be a bare file name inside the output directory",
        )

    output_dir = Path(os.getenv("MIGRATOR_OUTPUT_DIR", "outputs"))
    if not (output_dir / payload.file_name).is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Export document not found: {payload.file_name}",
        )

    job_id = str(uuid.uuid4())
    background_tasks.add_task(_run_import_job, job_id, payload)
    logger.info(
        "Queued import job: job_id=%s, file=%s, index=%s",
        job_id,
        payload.file_name,
        payload.index,
    )

    return JobResponse(job_id=job_id, status="queued", kind="import")
