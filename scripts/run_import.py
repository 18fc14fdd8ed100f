#!/usr/bin/env python3
"""CLI entry point for metaobject import.

Usage:
    # Import a whole export document, aborting on the first failure
    python scripts/run_import.py outputs/prod-book-2026-01-01T00-00-00-000000+00-00.json

    # Keep going past failing entries
    python scripts/run_import.py FILE --skip-on-error

    # Import a single entry (by position in the document)
    python scripts/run_import.py FILE --index 3
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

import aiohttp
from redis.asyncio import Redis

from metaobject_migrator.config import load_settings
from metaobject_migrator.migration.importer import MetaobjectImporter
from metaobject_migrator.migration.storage import (
    read_export_document,
    write_import_summary,
)
from metaobject_migrator.schemas.progress import ImportProgress, ResolverProgress
from metaobject_migrator.shopify.client import ShopifyGraphQLClient
from metaobject_migrator.shopify.exceptions import (
    ImportAbortedError,
    ShopifyMigratorError,
)


logger = logging.getLogger("run_import")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def log_progress(progress: ImportProgress) -> None:
    position = f"{progress.index + 1}/{progress.total}"
    if progress.error:
        logger.error("[%s] %s: %s", position, progress.message, progress.error)
    else:
        logger.info("[%s] %s", position, progress.message)


def log_resolver_progress(progress: ResolverProgress) -> None:
    if progress.phase == "group-complete":
        logger.debug(
            "Resolved %s: %s found, %s missing (calls=%s)",
            progress.group,
            progress.group_resolved,
            progress.group_failed,
            progress.calls,
        )


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Import Shopify metaobjects")
    parser.add_argument("file", type=Path, help="Export document to import")
    parser.add_argument(
        "--skip-on-error",
        action="store_true",
        help="Record failing entries and continue instead of aborting",
    )
    parser.add_argument(
        "--index",
        type=int,
        help="Import only the entry at this position",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        settings = load_settings()
        document, stats = await read_export_document(args.file)
    except (ShopifyMigratorError, OSError, ValueError) as exc:
        logger.error("Cannot load %s: %s", args.file, exc)
        return 1

    logger.info("Loaded %s entries: %s", stats.total, stats.by_type)

    redis = Redis.from_url(settings.redis_url) if settings.redis_url else None
    exit_code = 0
    try:
        async with aiohttp.ClientSession() as session:
            client = ShopifyGraphQLClient.from_settings(settings, session)
            importer = MetaobjectImporter(
                client,
                skip_on_error=args.skip_on_error,
                chunk_size=settings.backref_chunk_size,
                resolve_chunk_size=settings.resolve_chunk_size,
                on_progress=log_progress,
                on_resolve_progress=log_resolver_progress,
                redis=redis,
            )
            try:
                if args.index is None:
                    report = await importer.run_import(document)
                else:
                    report = await importer.run_import_one(document, args.index)
            except ImportAbortedError as exc:
                logger.error("Import aborted: %s", exc)
                report = exc.report
                exit_code = 1
    except (ShopifyMigratorError, IndexError) as exc:
        logger.error("Import failed: %s", exc)
        return 1
    finally:
        if redis is not None:
            await redis.aclose()

    summary_path = await write_import_summary(document, report, settings.output_dir)
    logger.info("Summary written to %s", summary_path)

    if report.failed_indexes:
        logger.warning("Failed entries: %s", report.failed_indexes)
        exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
