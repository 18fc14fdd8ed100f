#!/usr/bin/env python3
"""CLI entry point for metaobject export.

Usage:
    # Export two types with portable handle references
    python scripts/run_export.py --type author --type book

    # Keep raw GIDs, skip back-references
    python scripts/run_export.py --type book --retain-ids --no-back-references
"""
import argparse
import asyncio
import logging
import sys

import aiohttp

from metaobject_migrator.config import load_settings
from metaobject_migrator.migration.exporter import MetaobjectExporter
from metaobject_migrator.schemas.progress import ExportProgress
from metaobject_migrator.shopify.client import ShopifyGraphQLClient
from metaobject_migrator.shopify.exceptions import ShopifyMigratorError


logger = logging.getLogger("run_export")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def log_progress(progress: ExportProgress) -> None:
    logger.info("[%s] %s", progress.phase, progress.message)


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Export Shopify metaobjects")
    parser.add_argument(
        "--type",
        dest="types",
        action="append",
        required=True,
        help="Metaobject type to export (repeatable)",
    )
    parser.add_argument(
        "--environment",
        type=str,
        help="Environment label for the document. Defaults to MIGRATOR_ENVIRONMENT.",
    )
    parser.add_argument(
        "--retain-ids",
        action="store_true",
        help="Keep raw GIDs instead of portable handle references",
    )
    parser.add_argument(
        "--no-back-references",
        action="store_true",
        help="Do not record metafields on other resources pointing at entries",
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
        async with aiohttp.ClientSession() as session:
            client = ShopifyGraphQLClient.from_settings(settings, session)
            exporter = MetaobjectExporter(
                client, page_size=settings.page_size, on_progress=log_progress
            )
            path = await exporter.run_export(
                args.environment or settings.environment,
                args.types,
                settings.output_dir,
                retain_ids=args.retain_ids,
                include_back_references=not args.no_back_references,
            )
    except ShopifyMigratorError as exc:
        logger.error("Export failed: %s", exc)
        return 1

    logger.info("Export written to %s", path)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
