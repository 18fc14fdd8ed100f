"""Shared fakes for unit tests."""
import re
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from metaobject_migrator.shopify.exceptions import ShopifyApiError
from metaobject_migrator.shopify.graphql_strings import (
    MUTATION_FILE_CREATE,
    MUTATION_METAFIELDS_SET,
    MUTATION_METAOBJECT_UPSERT,
    QUERY_COLLECTION_IDS_BY_HANDLE,
    QUERY_METAOBJECT_IDS_BY_HANDLE,
    QUERY_PAGE_IDS_BY_HANDLE,
    QUERY_PRODUCT_IDS_BY_HANDLE,
    QUERY_VARIANTS_FOR_PRODUCT,
)


_HANDLE_TERM = re.compile(r'handle:"((?:[^"\\]|\\.)*)"')


def handles_in(search: str) -> list[str]:
    """Handles named in an OR-joined ``handle:"..."`` search string."""
    return [
        h.replace('\\"', '"').replace("\\\\", "\\") for h in _HANDLE_TERM.findall(search)
    ]


class FakeShop:
    """In-memory destination store answering the migrator's GraphQL calls.

    Handle searches behave like Shopify's: a stored handle that merely starts
    with the requested one is returned too, one page of ``first`` hits at a time.
    """

    def __init__(self):
        self.products: dict[str, str] = {}
        self.collections: dict[str, str] = {}
        self.pages: dict[str, str] = {}
        self.variants: dict[str, dict[str, str]] = {}  # product handle -> sku -> gid
        self.metaobjects: dict[tuple[str, str], str] = {}
        self.files: list[str] = []

        self.upserts: list[tuple[str, str, dict[str, str]]] = []
        self.metafield_calls: list[list[dict]] = []
        self.queries: list[str] = []

        self.upsert_errors: dict[str, list[str]] = {}  # handle -> messages
        self.metafield_errors: dict[int, list[str]] = {}  # call number -> messages
        self.failing_queries: set[str] = set()

    def calls_to(self, query: str) -> int:
        return sum(1 for q in self.queries if q is query)

    def handle(self, query: str, variables: Optional[dict] = None) -> dict:
        variables = variables or {}
        self.queries.append(query)
        if query in self.failing_queries:
            raise ShopifyApiError("HTTP 500 after 6 attempts: upstream unavailable")

        if query is MUTATION_METAOBJECT_UPSERT:
            return self._upsert(variables)
        if query is MUTATION_METAFIELDS_SET:
            return self._metafields_set(variables)
        if query is MUTATION_FILE_CREATE:
            gid = f"gid://shopify/MediaImage/{len(self.files) + 1}"
            self.files.append(variables["files"][0]["originalSource"])
            return {
                "data": {
                    "fileCreate": {
                        "files": [{"id": gid, "fileStatus": "UPLOADED", "alt": None}],
                        "userErrors": [],
                    }
                }
            }
        if query is QUERY_PRODUCT_IDS_BY_HANDLE:
            return self._search("products", self.products, variables)
        if query is QUERY_COLLECTION_IDS_BY_HANDLE:
            return self._search("collections", self.collections, variables)
        if query is QUERY_PAGE_IDS_BY_HANDLE:
            return self._search("pages", self.pages, variables)
        if query is QUERY_METAOBJECT_IDS_BY_HANDLE:
            of_type = {
                handle: gid
                for (metaobject_type, handle), gid in self.metaobjects.items()
                if metaobject_type == variables["type"]
            }
            return self._search("metaobjects", of_type, variables)
        if query is QUERY_VARIANTS_FOR_PRODUCT:
            skus = self.variants.get(variables["handle"])
            if skus is None:
                return {"data": {"productByIdentifier": None}}
            return {
                "data": {
                    "productByIdentifier": {
                        "id": "gid://shopify/Product/parent",
                        "variants": {
                            "nodes": [{"id": gid, "sku": sku} for sku, gid in skus.items()]
                        },
                    }
                }
            }
        raise AssertionError(f"unexpected query: {query.strip()[:60]}")

    @staticmethod
    def _search(root_field: str, by_handle: dict[str, str], variables: dict) -> dict:
        wanted = handles_in(variables["query"])
        hits = [
            {"id": gid, "handle": handle}
            for handle, gid in by_handle.items()
            if any(handle.startswith(w) for w in wanted)
        ]
        start = int(variables.get("after") or 0)
        end = start + variables["first"]
        return {
            "data": {
                root_field: {
                    "nodes": hits[start:end],
                    "pageInfo": {
                        "hasNextPage": end < len(hits),
                        "endCursor": str(end) if end < len(hits) else None,
                    },
                }
            }
        }

    def _upsert(self, variables: dict) -> dict:
        metaobject_type = variables["handle"]["type"]
        handle = variables["handle"]["handle"]
        fields = {f["key"]: f["value"] for f in variables["metaobject"]["fields"]}
        self.upserts.append((metaobject_type, handle, fields))

        messages = self.upsert_errors.get(handle)
        if messages:
            return {
                "data": {
                    "metaobjectUpsert": {
                        "metaobject": None,
                        "userErrors": [{"field": ["fields"], "message": m} for m in messages],
                    }
                }
            }

        key = (metaobject_type, handle)
        if key not in self.metaobjects:
            self.metaobjects[key] = f"gid://shopify/Metaobject/{len(self.metaobjects) + 1}"
        return {
            "data": {
                "metaobjectUpsert": {
                    "metaobject": {
                        "id": self.metaobjects[key],
                        "handle": handle,
                        "type": metaobject_type,
                    },
                    "userErrors": [],
                }
            }
        }

    def _metafields_set(self, variables: dict) -> dict:
        self.metafield_calls.append(variables["metafields"])
        messages = self.metafield_errors.get(len(self.metafield_calls), [])
        return {
            "data": {
                "metafieldsSet": {
                    "metafields": [],
                    "userErrors": [{"field": ["metafields"], "message": m} for m in messages],
                }
            }
        }


@pytest.fixture
def shop():
    return FakeShop()


@pytest.fixture
def transport(shop):
    """Mock transport client backed by ``shop``."""
    client = MagicMock()
    client.shop_domain = "dest-shop.myshopify.com"
    client.request = AsyncMock(side_effect=shop.handle)
    return client
