"""Import an export document into the destination store.

An import runs in two phases:

Phase A upserts every entry in document order, translating handle
references in field values to destination GIDs. Each created metaobject is
fed back into the resolver cache so later entries can point at it.

Phase B writes back-references: for every entry still pending, the owners'
metafields are set to point at the newly created metaobjects, aggregated
per (owner, namespace, key) and written in chunks.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from redis.asyncio import Redis

from ..schemas.export_document import ExportDocument, ExportEntry
from ..schemas.import_results import EntryStatus, ImportReport
from ..schemas.progress import ImportObserver, ImportProgress, ResolverObserver
from ..shopify.client import ShopifyGraphQLClient
from ..shopify.exceptions import (
    BackReferenceWriteError,
    ImportAbortedError,
    MetaobjectUpsertError,
)
from ..shopify.metafields import (
    DEFAULT_CHUNK_SIZE,
    MetafieldSetItem,
    build_set_item,
    metafields_set_batch,
)
from ..shopify.metaobjects import upsert_metaobject
from .locking import shop_run_lock
from .ordering import entry_ref
from .references import is_gid, is_handle_ref, normalize_type
from .resolver import MAX_PAGE_SIZE, BulkHandleResolver
from .values import collect_handle_refs, serialize_field, transform_fields


logger = logging.getLogger(__name__)

_OwnerSlot = tuple[str, str, str]  # (owner_id, namespace, key)


class MetaobjectImporter:
    """Runs imports against one destination store."""

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        skip_on_error: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        resolve_chunk_size: int = MAX_PAGE_SIZE,
        on_progress: Optional[ImportObserver] = None,
        on_resolve_progress: Optional[ResolverObserver] = None,
        redis: Optional[Redis] = None,
    ):
        """Initialize the importer.

        Args:
            client: Transport for the destination store
            skip_on_error: Record failures and continue instead of aborting
            chunk_size: Back-reference writes per metafieldsSet call
            resolve_chunk_size: Handles per resolver search query
            on_progress: Optional observer for import progress snapshots
            on_resolve_progress: Optional observer for resolver group records
            redis: Optional Redis client; when set, runs hold a per-shop lock
        """
        self.client = client
        self.skip_on_error = skip_on_error
        self.chunk_size = chunk_size
        self.resolve_chunk_size = resolve_chunk_size
        self.on_progress = on_progress
        self.on_resolve_progress = on_resolve_progress
        self.redis = redis
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the running import at the next entry boundary."""
        self._cancelled = True

    def _new_resolver(self) -> BulkHandleResolver:
        return BulkHandleResolver(
            self.client,
            chunk_size=self.resolve_chunk_size,
            on_progress=self.on_resolve_progress,
        )

    async def run_import(self, document: ExportDocument) -> ImportReport:
        """Import every entry of ``document``.

        Returns:
            The run report; with ``skip_on_error`` failures are recorded in it

        Raises:
            ImportAbortedError: On the first failure when not skipping errors
            MigrationLockedError: If another run holds the shop lock
        """
        self._cancelled = False
        report = ImportReport()
        resolver = self._new_resolver()
        indexes = range(len(document.entries))

        logger.info(
            "Starting import of %s entries into %s",
            len(document.entries),
            self.client.shop_domain,
        )
        async with shop_run_lock(self.redis, self.client.shop_domain):
            for index in indexes:
                if self._cancelled:
                    logger.warning("Import cancelled before entry %s", index)
                    self._emit(report, index, document, "Import cancelled")
                    break
                await self._import_entry(document, index, resolver, report)

            if not self._cancelled:
                await self._apply_back_references(document, indexes, resolver, report)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Import finished: %s entries, %s failed, resolver calls=%s",
            len(document.entries),
            len(report.failed_indexes),
            resolver.calls,
        )
        return report

    async def run_import_one(self, document: ExportDocument, index: int) -> ImportReport:
        """Import only the entry at ``index``, including its back-references.

        Raises:
            IndexError: If ``index`` is outside the document
        """
        if not 0 <= index < len(document.entries):
            raise IndexError(
                f"Entry index {index} out of range (0..{len(document.entries) - 1})"
            )

        self._cancelled = False
        report = ImportReport()
        resolver = self._new_resolver()

        async with shop_run_lock(self.redis, self.client.shop_domain):
            await self._import_entry(document, index, resolver, report)
            await self._apply_back_references(document, [index], resolver, report)

        report.finished_at = datetime.now(timezone.utc)
        return report

    async def _import_entry(
        self,
        document: ExportDocument,
        index: int,
        resolver: BulkHandleResolver,
        report: ImportReport,
    ) -> None:
        entry = document.entries[index]
        self._emit(report, index, document, f"Importing {entry.key}", entry)

        try:
            refs = collect_handle_refs(entry.fields)
            if refs:
                await resolver.resolve_many(refs)
            fields = await transform_fields(entry.fields, resolver)
            result = await upsert_metaobject(
                self.client,
                entry.type,
                entry.handle,
                [{"key": key, "value": serialize_field(value)} for key, value in fields.items()],
            )
            if result.user_errors:
                raise MetaobjectUpsertError(entry.type, entry.handle, result.user_errors)
        except Exception as exc:
            if isinstance(exc, MetaobjectUpsertError):
                error = str(exc)
            else:
                error = f"Failed to upsert {entry.key}: {exc}"
            report.fail(index, error)
            logger.error(error)
            self._emit(report, index, document, f"Failed {entry.key}", entry, error)
            if self.skip_on_error:
                return
            report.finished_at = datetime.now(timezone.utc)
            raise ImportAbortedError(error, report) from exc

        report.mark(index, EntryStatus.METAOBJECT_CREATED)
        if result.id:
            report.created_ids[index] = result.id
            resolver.prime(entry_ref(entry), result.id)

        if not entry.back_references:
            report.mark(index, EntryStatus.BACKREFERENCES_COMPLETED)
        elif result.id:
            report.mark(index, EntryStatus.BACKREFERENCES_PENDING)
        else:
            report.fail(
                index,
                f"metaobjectUpsert returned no id for {entry.key}; "
                "back references cannot be set",
            )
        self._emit(report, index, document, f"Imported {entry.key}", entry)

    async def _apply_back_references(
        self,
        document: ExportDocument,
        indexes: Iterable[int],
        resolver: BulkHandleResolver,
        report: ImportReport,
    ) -> None:
        pending: list[tuple[int, str, str, str]] = []
        for index in indexes:
            if report.status_of(index) is not EntryStatus.BACKREFERENCES_PENDING:
                continue
            for back_ref in document.entries[index].back_references or []:
                pending.append(
                    (index, back_ref.owner, normalize_type(back_ref.namespace), back_ref.key)
                )
        if not pending:
            return

        last_index = pending[-1][0]
        self._emit(report, last_index, document, "Setting back references")

        owner_refs = [owner for _, owner, _, _ in pending if is_handle_ref(owner)]
        owner_ids = await resolver.resolve_many(owner_refs) if owner_refs else {}

        targets: dict[_OwnerSlot, list[str]] = {}
        slot_entries: dict[_OwnerSlot, set[int]] = {}
        involved: set[int] = set()
        for index, owner, namespace, key in pending:
            involved.add(index)
            owner_id = owner if is_gid(owner) else owner_ids.get(owner)
            if not owner_id:
                report.fail(
                    index,
                    f"Back reference owner {owner} not found ({namespace}.{key})",
                )
                continue
            slot = (owner_id, namespace, key)
            targets.setdefault(slot, []).append(report.created_ids[index])
            slot_entries.setdefault(slot, set()).add(index)

        items: list[MetafieldSetItem] = [
            build_set_item(owner_id, namespace, key, ids)
            for (owner_id, namespace, key), ids in targets.items()
        ]
        outcome = await metafields_set_batch(self.client, items, self.chunk_size)

        for failure in outcome.failures:
            error = str(BackReferenceWriteError(failure.messages))
            for item in failure.items:
                for index in slot_entries[(item.owner_id, item.namespace, item.key)]:
                    report.fail(index, error)

        for index in sorted(involved):
            report.mark(index, EntryStatus.BACKREFERENCES_COMPLETED)

        logger.info(
            "Back references: %s writes, %s failed chunks",
            len(items),
            len(outcome.failures),
        )
        if outcome.ok:
            self._emit(report, last_index, document, "Back references set")
            return

        write_error = BackReferenceWriteError(outcome.messages)
        report.backreference_errors.extend(outcome.messages)
        self._emit(
            report, last_index, document, "Back references failed", error=str(write_error)
        )
        if self.skip_on_error:
            return
        report.finished_at = datetime.now(timezone.utc)
        raise ImportAbortedError(str(write_error), report) from write_error

    def _emit(
        self,
        report: ImportReport,
        index: int,
        document: ExportDocument,
        message: str,
        entry: Optional[ExportEntry] = None,
        error: Optional[str] = None,
    ) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            ImportProgress(
                index=index,
                total=len(document.entries),
                message=message,
                entry_key=entry.key if entry is not None else None,
                error=error,
                completion={i: s.value for i, s in report.completion.items()},
            )
        )
