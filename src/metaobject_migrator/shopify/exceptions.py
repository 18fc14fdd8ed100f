"""Custom exceptions for the metaobject migrator."""


class ShopifyMigratorError(Exception):
    """Base exception for all migrator errors."""


class MigratorConfigError(ShopifyMigratorError):
    """Raised when required configuration is missing or invalid."""


class ShopifyApiError(ShopifyMigratorError):
    """Raised for Shopify API errors (HTTP 4xx/5xx, retries exhausted)."""


class ShopifyGraphQLError(ShopifyMigratorError):
    """Raised when GraphQL returns userErrors or root-level errors."""

    def __init__(self, user_errors: object):
        self.user_errors = user_errors
        if isinstance(user_errors, str):
            message = user_errors
        else:
            message = f"GraphQL userErrors: {user_errors}"
        super().__init__(message)


class ShopifyResponseError(ShopifyMigratorError):
    """Raised when a response is missing the expected data shape."""


class MigrationLockedError(ShopifyMigratorError):
    """Raised when the per-shop run lock is held by another run."""

    def __init__(self, shop_domain: str, lock_key: str):
        self.shop_domain = shop_domain
        self.lock_key = lock_key
        super().__init__(
            f"Migration lock already held for shop={shop_domain}, key={lock_key}"
        )


class ExportFailedError(ShopifyMigratorError):
    """Raised when fetching one of the requested types fails."""

    def __init__(self, metaobject_type: str, cause: Exception):
        self.metaobject_type = metaobject_type
        self.cause = cause
        super().__init__(f"Export of type {metaobject_type} failed: {cause}")


class MetaobjectUpsertError(ShopifyMigratorError):
    """Raised when metaobjectUpsert reports userErrors for an entry."""

    def __init__(self, entry_type: str, handle: str, messages: list[str]):
        self.entry_type = entry_type
        self.handle = handle
        self.messages = messages
        super().__init__(
            f"Failed to upsert {entry_type}/{handle}: {'; '.join(messages)}"
        )


class BackReferenceWriteError(ShopifyMigratorError):
    """Raised after all metafieldsSet chunks ran and some of them failed."""

    def __init__(self, messages: list[str]):
        self.messages = messages
        super().__init__(f"Failed to set back references: {'; '.join(messages)}")


class ImportAbortedError(ShopifyMigratorError):
    """Raised when an import stops on the first failure.

    Carries the partial report so callers can still persist a summary.
    """

    def __init__(self, message: str, report: object):
        self.report = report
        super().__init__(message)
