"""Bulk resolution of handle references to destination GIDs.

References are grouped by kind so each group costs as few remote calls as
the Admin API allows:

- Product, Collection, Page: one OR-filtered search per chunk of handles.
- Metaobject: one OR-filtered search per normalized type (and chunk).
- ProductVariant: one product lookup per parent handle, matched by SKU.
- MediaImage: one fileCreate per URL; no bulk primitive exists.

Every result, including "not found" and failed groups, is cached as final
for the lifetime of the resolver instance.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..schemas.progress import ResolverObserver, ResolverProgress
from ..shopify.client import ShopifyGraphQLClient, require_data
from ..shopify.exceptions import ShopifyResponseError
from ..shopify.graphql_strings import (
    QUERY_COLLECTION_IDS_BY_HANDLE,
    QUERY_METAOBJECT_IDS_BY_HANDLE,
    QUERY_PAGE_IDS_BY_HANDLE,
    QUERY_PRODUCT_IDS_BY_HANDLE,
    QUERY_VARIANTS_FOR_PRODUCT,
)
from ..shopify.media import image_url_to_media_image_gid
from .references import RefKind, normalize_type, parse_symbolic_ref


# Shopify caps connection page size at 250
MAX_PAGE_SIZE = 250

_HANDLE_QUERIES = {
    RefKind.PRODUCT: (QUERY_PRODUCT_IDS_BY_HANDLE, "products"),
    RefKind.COLLECTION: (QUERY_COLLECTION_IDS_BY_HANDLE, "collections"),
    RefKind.PAGE: (QUERY_PAGE_IDS_BY_HANDLE, "pages"),
}


def build_handle_query(handles: Iterable[str]) -> str:
    """Search string matching any of ``handles``."""
    terms = []
    for handle in handles:
        escaped = handle.replace("\\", "\\\\").replace('"', '\\"')
        terms.append(f'handle:"{escaped}"')
    return " OR ".join(terms)


class _CountingTransport:
    """Wraps the transport to count remote calls issued by the resolver."""

    def __init__(self, client: ShopifyGraphQLClient):
        self._client = client
        self.calls = 0

    async def request(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict:
        self.calls += 1
        return await self._client.request(query, variables)


@dataclass
class _ResolutionGroup:
    kind: RefKind
    label: str
    refs: list[str]
    fetch: Callable[[], Awaitable[dict[str, Optional[str]]]]


class BulkHandleResolver:
    """Resolve handle references with batched queries and a run-scoped cache."""

    def __init__(
        self,
        client: ShopifyGraphQLClient,
        chunk_size: int = MAX_PAGE_SIZE,
        on_progress: Optional[ResolverObserver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the resolver.

        Args:
            client: Transport for the destination store
            chunk_size: Max handles per OR-filtered query (capped at 250)
            on_progress: Optional observer for group progress records
            logger: Optional logger instance
        """
        self._transport = _CountingTransport(client)
        self.chunk_size = max(1, min(chunk_size, MAX_PAGE_SIZE))
        self.on_progress = on_progress
        self.logger = logger or logging.getLogger(__name__)

        self._cache: dict[str, Optional[str]] = {}
        self.resolved = 0
        self.failed = 0

    @property
    def calls(self) -> int:
        """Remote calls issued so far by this resolver."""
        return self._transport.calls

    def __contains__(self, ref: str) -> bool:
        return ref in self._cache

    def cached(self, ref: str) -> Optional[str]:
        return self._cache.get(ref)

    def prime(self, ref: str, gid: str) -> None:
        """Record a GID learned elsewhere, unless ``ref`` was already resolved."""
        self._cache.setdefault(ref, gid)

    async def resolve(self, ref: str) -> Optional[str]:
        if ref not in self._cache:
            await self.resolve_many([ref])
        return self._cache.get(ref)

    async def resolve_many(self, refs: Iterable[str]) -> dict[str, Optional[str]]:
        """Resolve ``refs``; cache hits never cost a remote call.

        Returns:
            Mapping of every requested ref to its GID or None
        """
        wanted = list(dict.fromkeys(refs))
        misses = [ref for ref in wanted if ref not in self._cache]
        if misses:
            for group in self._plan_groups(misses):
                await self._run_group(group)
        return {ref: self._cache.get(ref) for ref in wanted}

    def _plan_groups(self, refs: list[str]) -> list[_ResolutionGroup]:
        metaobjects: dict[str, dict[str, list[str]]] = {}
        by_handle: dict[RefKind, dict[str, list[str]]] = {
            kind: {} for kind in _HANDLE_QUERIES
        }
        variants: dict[str, list[tuple[str, str]]] = {}
        media: list[tuple[str, str]] = []

        for ref in refs:
            parsed = parse_symbolic_ref(ref)
            if parsed is None:
                self.logger.debug("Not a handle reference, caching as unresolved: %s", ref)
                self._store(ref, None)
                continue

            if parsed.kind is RefKind.METAOBJECT:
                metaobject_type = normalize_type(parsed.metaobject_type)
                metaobjects.setdefault(metaobject_type, {}).setdefault(
                    parsed.handle, []
                ).append(ref)
            elif parsed.kind is RefKind.PRODUCT_VARIANT:
                variants.setdefault(parsed.handle, []).append((ref, parsed.sku))
            elif parsed.kind is RefKind.MEDIA_IMAGE:
                media.append((ref, parsed.key_parts[0]))
            else:
                by_handle[parsed.kind].setdefault(parsed.handle, []).append(ref)

        groups: list[_ResolutionGroup] = []

        for kind, handles in by_handle.items():
            query, root_field = _HANDLE_QUERIES[kind]
            groups.extend(
                self._handle_groups(kind, kind.value, handles, query, root_field)
            )

        for metaobject_type, handles in metaobjects.items():
            groups.extend(
                self._handle_groups(
                    RefKind.METAOBJECT,
                    f"Metaobject {metaobject_type}",
                    handles,
                    QUERY_METAOBJECT_IDS_BY_HANDLE,
                    "metaobjects",
                    metaobject_type=metaobject_type,
                )
            )

        for product_handle, sku_refs in variants.items():
            groups.append(
                _ResolutionGroup(
                    kind=RefKind.PRODUCT_VARIANT,
                    label=f"ProductVariant {product_handle}",
                    refs=[ref for ref, _ in sku_refs],
                    fetch=self._variant_fetcher(product_handle, sku_refs),
                )
            )

        for ref, url in media:
            groups.append(
                _ResolutionGroup(
                    kind=RefKind.MEDIA_IMAGE,
                    label=f"MediaImage {url}",
                    refs=[ref],
                    fetch=self._media_fetcher(ref, url),
                )
            )

        return groups

    def _handle_groups(
        self,
        kind: RefKind,
        label: str,
        handles: dict[str, list[str]],
        query: str,
        root_field: str,
        metaobject_type: Optional[str] = None,
    ) -> list[_ResolutionGroup]:
        handle_list = list(handles)
        chunks = [
            handle_list[i:i + self.chunk_size]
            for i in range(0, len(handle_list), self.chunk_size)
        ]
        groups = []
        for number, chunk in enumerate(chunks, start=1):
            chunk_refs = {handle: handles[handle] for handle in chunk}
            chunk_label = label if len(chunks) == 1 else f"{label} ({number}/{len(chunks)})"
            groups.append(
                _ResolutionGroup(
                    kind=kind,
                    label=chunk_label,
                    refs=[ref for refs in chunk_refs.values() for ref in refs],
                    fetch=self._handle_fetcher(query, root_field, chunk_refs, metaobject_type),
                )
            )
        return groups

    def _handle_fetcher(
        self,
        query: str,
        root_field: str,
        refs_by_handle: dict[str, list[str]],
        metaobject_type: Optional[str],
    ) -> Callable[[], Awaitable[dict[str, Optional[str]]]]:
        async def fetch() -> dict[str, Optional[str]]:
            variables: dict[str, Any] = {
                "first": MAX_PAGE_SIZE,
                "query": build_handle_query(refs_by_handle),
            }
            if metaobject_type is not None:
                variables["type"] = metaobject_type

            # search is not exact: prefix hits can fill a page, so keep
            # paging until every handle has an exact match or results run out
            ids: dict[str, str] = {}
            while True:
                response = await self._transport.request(query, variables)
                connection = require_data(response, root_field)
                if connection is None or not isinstance(connection.get("nodes"), list):
                    raise ShopifyResponseError(f"{root_field} returned no nodes list")

                for node in connection["nodes"]:
                    if node and node.get("handle") in refs_by_handle and node.get("id"):
                        ids.setdefault(node["handle"], node["id"])

                if len(ids) == len(refs_by_handle):
                    break
                page_info = connection.get("pageInfo") or {}
                cursor = page_info.get("endCursor")
                if not page_info.get("hasNextPage") or not cursor:
                    break
                variables = {**variables, "after": cursor}

            return {
                ref: ids.get(handle)
                for handle, refs in refs_by_handle.items()
                for ref in refs
            }

        return fetch

    def _variant_fetcher(
        self, product_handle: str, sku_refs: list[tuple[str, str]]
    ) -> Callable[[], Awaitable[dict[str, Optional[str]]]]:
        async def fetch() -> dict[str, Optional[str]]:
            response = await self._transport.request(
                QUERY_VARIANTS_FOR_PRODUCT, {"handle": product_handle}
            )
            product = require_data(response, "productByIdentifier")
            if product is None:
                # missing parent: every variant under it is simply not found
                return {ref: None for ref, _ in sku_refs}

            by_sku: dict[str, str] = {}
            for variant in (product.get("variants") or {}).get("nodes") or []:
                if variant and variant.get("id"):
                    by_sku.setdefault(variant.get("sku") or "", variant["id"])
            return {ref: by_sku.get(sku) for ref, sku in sku_refs}

        return fetch

    def _media_fetcher(
        self, ref: str, url: str
    ) -> Callable[[], Awaitable[dict[str, Optional[str]]]]:
        async def fetch() -> dict[str, Optional[str]]:
            result = await image_url_to_media_image_gid(self._transport, url)
            if result.status == "error":
                self.logger.warning("MediaImage %s not created: %s", url, result.error)
            return {ref: result.id}

        return fetch

    async def _run_group(self, group: _ResolutionGroup) -> None:
        self._emit("group-start", group)

        error: Optional[str] = None
        try:
            results = await group.fetch()
        except Exception as exc:
            error = str(exc)
            results = {}
            self.logger.warning(
                "Resolution group %s failed (%s refs): %s",
                group.label,
                len(group.refs),
                error,
            )

        group_resolved = group_failed = 0
        for ref in group.refs:
            gid = results.get(ref)
            self._store(ref, gid)
            if gid:
                group_resolved += 1
            else:
                group_failed += 1

        if error is not None:
            self._emit(
                "group-error",
                group,
                group_resolved=group_resolved,
                group_failed=group_failed,
                error=error,
            )
        self._emit(
            "group-complete",
            group,
            group_resolved=group_resolved,
            group_failed=group_failed,
        )
        self.logger.debug(
            "Resolved group %s: resolved=%s, failed=%s",
            group.label,
            group_resolved,
            group_failed,
        )

    def _store(self, ref: str, gid: Optional[str]) -> None:
        self._cache[ref] = gid or None
        if gid:
            self.resolved += 1
        else:
            self.failed += 1

    def _emit(
        self,
        phase: str,
        group: _ResolutionGroup,
        group_resolved: int = 0,
        group_failed: int = 0,
        error: Optional[str] = None,
    ) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            ResolverProgress(
                phase=phase,
                kind=group.kind.value,
                group=group.label,
                size=len(group.refs),
                calls=self.calls,
                resolved=self.resolved,
                failed=self.failed,
                group_resolved=group_resolved,
                group_failed=group_failed,
                error=error,
            )
        )
