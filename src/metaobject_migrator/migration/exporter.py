"""Export metaobjects into a portable, dependency-ordered document."""
import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from ..schemas.export_document import BackReference, ExportDocument, ExportEntry
from ..schemas.progress import ExportObserver, ExportProgress
from ..shopify.client import ShopifyGraphQLClient
from ..shopify.exceptions import ExportFailedError
from ..shopify.metaobjects import (
    MetaobjectPage,
    extract_back_references,
    fetch_back_references_from,
    fetch_metaobjects_page,
)
from .ordering import order_entries
from .references import is_gid, normalize_type, to_symbolic_ref
from .storage import write_export_document


logger = logging.getLogger(__name__)


def normalize_field_for_export(field: dict, retain_ids: bool, deps: set[str]) -> Any:
    """Return the exported value of one metaobject field.

    With ``retain_ids`` the raw value is kept verbatim. Otherwise reference
    fields become handle references (a list when the field is a list type)
    and bare GID values, alone or in a list, are kept but recorded as
    dependencies.
    """
    json_value = field.get("jsonValue")
    base_value = json_value if json_value is not None else field.get("value")

    if retain_ids:
        return base_value

    referenced: list[dict] = []
    if field.get("reference"):
        referenced.append(field["reference"])
    referenced.extend((field.get("references") or {}).get("nodes") or [])

    handle_refs = list(
        dict.fromkeys(ref for ref in map(to_symbolic_ref, referenced) if ref)
    )
    is_list = str(field.get("type") or "").startswith("list.") or bool(
        (field.get("references") or {}).get("nodes")
    )

    if handle_refs:
        deps.update(handle_refs)
        return handle_refs if is_list else handle_refs[0]

    if is_gid(base_value):
        deps.add(base_value)
    elif isinstance(base_value, list):
        deps.update(item for item in base_value if is_gid(item))
    return base_value


class MetaobjectExporter:
    """Fetches metaobjects by type and builds an ordered export document."""

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        page_size: int = 250,
        on_progress: Optional[ExportObserver] = None,
    ):
        self.client = client
        self.page_size = page_size
        self.on_progress = on_progress

    def _emit(self, **kwargs) -> None:
        if self.on_progress is not None:
            self.on_progress(ExportProgress(**kwargs))

    async def build_document(
        self,
        environment: str,
        types: list[str],
        retain_ids: bool = False,
        include_back_references: bool = True,
    ) -> ExportDocument:
        """Fetch every requested type and return the ordered document.

        Raises:
            ExportFailedError: If fetching any type fails; nothing is returned
        """
        entries: list[ExportEntry] = []
        dependencies: dict[int, set[str]] = {}

        for metaobject_type in types:
            self._emit(
                phase="fetch",
                message=f"Fetching {metaobject_type}…",
                current_type=metaobject_type,
            )
            try:
                fetched = await self._fetch_type(
                    metaobject_type, retain_ids, include_back_references
                )
            except Exception as exc:
                logger.error("Export of %s failed: %s", metaobject_type, exc)
                raise ExportFailedError(metaobject_type, exc) from exc

            for entry, deps in fetched:
                if deps:
                    dependencies[len(entries)] = deps
                entries.append(entry)

            self._emit(
                phase="fetch",
                message=f"Fetched {len(fetched)} of {metaobject_type}",
                count=len(fetched),
                current_type=metaobject_type,
            )
            logger.info("Fetched %s metaobjects of %s", len(fetched), metaobject_type)

        ordered = order_entries(entries, dependencies)
        return ExportDocument(environment=environment, entries=ordered)

    async def run_export(
        self,
        environment: str,
        types: list[str],
        output_dir: Path,
        retain_ids: bool = False,
        include_back_references: bool = True,
    ) -> Path:
        """Build the document and write it; no file is written on failure."""
        document = await self.build_document(
            environment, types, retain_ids, include_back_references
        )
        self._emit(
            phase="write", message="Writing output…", total=document.count
        )
        path = await write_export_document(document, output_dir, types)
        logger.info("Wrote %s entries to %s", document.count, path)
        return path

    async def _fetch_type(
        self,
        metaobject_type: str,
        retain_ids: bool,
        include_back_references: bool,
    ) -> list[tuple[ExportEntry, set[str]]]:
        results: list[tuple[ExportEntry, set[str]]] = []

        page = await fetch_metaobjects_page(
            self.client, metaobject_type, first=self.page_size
        )
        while True:
            next_page_task: Optional[asyncio.Task] = None
            if page.has_next_page:
                next_page_task = asyncio.ensure_future(
                    fetch_metaobjects_page(
                        self.client,
                        metaobject_type,
                        first=self.page_size,
                        after=page.end_cursor,
                    )
                )

            try:
                back_refs = await self._collect_back_references(
                    page, include_back_references
                )
            except BaseException:
                if next_page_task is not None:
                    next_page_task.cancel()
                raise

            for node in page.nodes:
                results.append(
                    self._build_entry(node, retain_ids, back_refs.get(node["id"]))
                )

            if next_page_task is None:
                break
            page = await next_page_task

        return results

    async def _collect_back_references(
        self, page: MetaobjectPage, include_back_references: bool
    ) -> dict[str, list[BackReference]]:
        """Initial inline back-references plus drained follow-up pages."""
        if not include_back_references:
            return {}

        collected: dict[str, list[BackReference]] = {}
        follow_ups: list[tuple[str, str]] = []
        for node in page.nodes:
            referenced_by = node.get("referencedBy") or {}
            collected[node["id"]] = extract_back_references(referenced_by.get("edges"))
            page_info = referenced_by.get("pageInfo") or {}
            if page_info.get("hasNextPage"):
                follow_ups.append((node["id"], page_info.get("endCursor")))

        if follow_ups:
            drained = await asyncio.gather(
                *(
                    fetch_back_references_from(self.client, node_id, after=cursor)
                    for node_id, cursor in follow_ups
                )
            )
            for (node_id, _), extra in zip(follow_ups, drained):
                collected[node_id].extend(extra)

        return collected

    @staticmethod
    def _build_entry(
        node: dict,
        retain_ids: bool,
        back_refs: Optional[list[BackReference]],
    ) -> tuple[ExportEntry, set[str]]:
        deps: set[str] = set()
        fields = {
            field["key"]: normalize_field_for_export(field, retain_ids, deps)
            for field in node.get("fields") or []
        }
        entry = ExportEntry(
            handle=node["handle"],
            type=normalize_type(node["type"]),
            fields=fields,
            back_references=back_refs or None,
        )
        return entry, deps
