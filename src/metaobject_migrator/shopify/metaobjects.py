"""Metaobject listing, referencedBy pagination and upsert."""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..migration.references import OWNER_KINDS, normalize_type, to_symbolic_ref
from ..schemas.export_document import BackReference
from .client import ShopifyGraphQLClient, require_data, user_error_messages
from .graphql_strings import (
    MUTATION_METAOBJECT_UPSERT,
    QUERY_METAOBJECT_REFERENCED_BY,
    QUERY_METAOBJECTS_PAGE,
)


logger = logging.getLogger(__name__)

_OWNER_TYPENAMES = {kind.value for kind in OWNER_KINDS}


@dataclass
class MetaobjectPage:
    """One page of the metaobjects connection."""

    nodes: list[dict]
    has_next_page: bool
    end_cursor: Optional[str]


@dataclass
class UpsertResult:
    id: Optional[str]
    user_errors: list[str] = field(default_factory=list)


async def fetch_metaobjects_page(
    client: ShopifyGraphQLClient,
    metaobject_type: str,
    first: int = 250,
    after: Optional[str] = None,
) -> MetaobjectPage:
    """Fetch one page of metaobjects of ``metaobject_type``."""
    response = await client.request(
        QUERY_METAOBJECTS_PAGE,
        {"type": metaobject_type, "first": first, "after": after},
    )
    connection = require_data(response, "metaobjects")
    if connection is None:
        return MetaobjectPage(nodes=[], has_next_page=False, end_cursor=None)

    page_info = connection.get("pageInfo") or {}
    return MetaobjectPage(
        nodes=connection.get("nodes") or [],
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
    )


def extract_back_references(edges: Optional[list[dict]]) -> list[BackReference]:
    """Convert referencedBy edges into back-references.

    Only Product, ProductVariant, Collection and Page referencers are kept.
    The owner is a handle reference when one can be built, else its GID.
    """
    back_refs: list[BackReference] = []
    for edge in edges or []:
        node = (edge or {}).get("node") or {}
        referencer = node.get("referencer")
        if not referencer or referencer.get("__typename") not in _OWNER_TYPENAMES:
            continue
        owner = to_symbolic_ref(referencer) or referencer.get("id")
        if not owner:
            continue
        back_refs.append(
            BackReference(
                owner_type=referencer["__typename"],
                owner=owner,
                namespace=normalize_type(node.get("namespace") or ""),
                key=node.get("key") or "",
            )
        )
    return back_refs


async def fetch_back_references_from(
    client: ShopifyGraphQLClient,
    metaobject_id: str,
    after: Optional[str] = None,
    first: int = 250,
) -> list[BackReference]:
    """Drain the referencedBy connection of a metaobject starting at ``after``."""
    results: list[BackReference] = []
    cursor = after
    while True:
        response = await client.request(
            QUERY_METAOBJECT_REFERENCED_BY,
            {"id": metaobject_id, "first": first, "after": cursor},
        )
        metaobject = require_data(response, "metaobject")
        referenced_by = (metaobject or {}).get("referencedBy")
        if not referenced_by:
            break

        results.extend(extract_back_references(referenced_by.get("edges")))

        page_info = referenced_by.get("pageInfo") or {}
        if not page_info.get("hasNextPage"):
            break
        cursor = page_info.get("endCursor")

    logger.debug(
        "Fetched %s follow-up back references for %s", len(results), metaobject_id
    )
    return results


async def upsert_metaobject(
    client: ShopifyGraphQLClient,
    metaobject_type: str,
    handle: str,
    fields: list[dict[str, str]],
) -> UpsertResult:
    """Create or update the metaobject keyed by (type, handle).

    Args:
        fields: ``[{"key": ..., "value": ...}]`` with wire-serialized values

    Raises:
        ShopifyGraphQLError: On root-level GraphQL errors
        ShopifyResponseError: If ``metaobjectUpsert`` is missing
    """
    response = await client.request(
        MUTATION_METAOBJECT_UPSERT,
        {
            "handle": {"type": metaobject_type, "handle": handle},
            "metaobject": {"fields": fields},
        },
    )
    payload = require_data(response, "metaobjectUpsert") or {}
    metaobject = payload.get("metaobject") or {}
    return UpsertResult(
        id=metaobject.get("id"),
        user_errors=user_error_messages(payload.get("userErrors")),
    )
