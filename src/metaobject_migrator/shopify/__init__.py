"""Shopify Admin GraphQL access."""
from .client import ShopifyGraphQLClient
from .exceptions import (
    BackReferenceWriteError,
    ExportFailedError,
    ImportAbortedError,
    MetaobjectUpsertError,
    MigrationLockedError,
    MigratorConfigError,
    ShopifyApiError,
    ShopifyGraphQLError,
    ShopifyMigratorError,
    ShopifyResponseError,
)

__all__ = [
    "ShopifyGraphQLClient",
    "ShopifyMigratorError",
    "MigratorConfigError",
    "ShopifyApiError",
    "ShopifyGraphQLError",
    "ShopifyResponseError",
    "MigrationLockedError",
    "ExportFailedError",
    "MetaobjectUpsertError",
    "BackReferenceWriteError",
    "ImportAbortedError",
]
