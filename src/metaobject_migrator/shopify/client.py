"""Async Shopify Admin GraphQL transport with bounded retries."""
import asyncio
import logging
import random
from typing import Any, Optional

import aiohttp

from .exceptions import ShopifyApiError, ShopifyGraphQLError, ShopifyResponseError


def _redact(text: str, token: str) -> str:
    if not text or not token:
        return text
    return text.replace(token, "[REDACTED]")


class ShopifyGraphQLClient:
    """Async client for the Shopify GraphQL Admin API.

    Retries HTTP 429, 5xx, network errors and THROTTLED GraphQL errors with
    exponential backoff and jitter. Any other response is returned as the raw
    ``{"data": ..., "errors": ...}`` envelope for the caller to inspect.
    """

    MAX_RETRY_ATTEMPTS = 5
    RETRY_BASE_DELAY = 0.25  # seconds
    RETRY_MULTIPLIER = 2.0
    RETRY_MAX_DELAY = 4.0  # seconds
    RETRY_JITTER_MS = 250  # milliseconds

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str,
        session: aiohttp.ClientSession,
        max_retries: int = MAX_RETRY_ATTEMPTS,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the GraphQL client.

        Args:
            shop_domain: e.g., "mystore.myshopify.com"
            access_token: Admin API access token (never logged)
            api_version: e.g., "2025-07"
            session: Injected aiohttp ClientSession
            max_retries: Retries after the first attempt before giving up
            logger: Optional logger instance
        """
        self.shop_domain = shop_domain
        self._access_token = access_token
        self.api_version = api_version
        self.session = session
        self.max_retries = max_retries
        self.logger = logger or logging.getLogger(__name__)

        self.graphql_endpoint = (
            f"https://{shop_domain}/admin/api/{api_version}/graphql.json"
        )

    @classmethod
    def from_settings(cls, settings, session: aiohttp.ClientSession) -> "ShopifyGraphQLClient":
        """Create a client from ``MigratorSettings``."""
        return cls(
            shop_domain=settings.shop_domain,
            access_token=settings.access_token,
            api_version=settings.api_version,
            session=session,
            max_retries=settings.max_retries,
        )

    async def request(
        self, query: str, variables: Optional[dict[str, Any]] = None
    ) -> dict:
        """Execute a GraphQL query or mutation.

        Args:
            query: GraphQL document
            variables: Optional variables map

        Returns:
            Parsed JSON envelope (``data`` and/or ``errors``)

        Raises:
            ShopifyApiError: On non-retryable HTTP errors or exhausted retries
        """
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._access_token,
        }
        payload = {"query": query, "variables": variables or {}}

        attempt = 0
        while True:
            attempt += 1
            exhausted = attempt > self.max_retries

            try:
                timeout = aiohttp.ClientTimeout(total=60, connect=10)
                async with self.session.post(
                    self.graphql_endpoint,
                    json=payload,
                    headers=headers,
                    timeout=timeout,
                ) as resp:
                    # Handle 429 (Rate Limit)
                    if resp.status == 429:
                        response_text = await resp.text()
                        if exhausted:
                            raise ShopifyApiError(
                                f"HTTP 429 after {attempt} attempts: "
                                f"{_redact(response_text[:200], self._access_token)}"
                            )

                        delay = self._retry_after(resp.headers.get("Retry-After"))
                        if delay is None:
                            delay = self._calculate_backoff(attempt)
                        self.logger.warning(
                            "HTTP 429, delay=%.2fs, attempt=%s", delay, attempt
                        )
                        await asyncio.sleep(delay)
                        continue

                    # Handle 5xx (Server Errors)
                    if 500 <= resp.status < 600:
                        response_text = await resp.text()
                        if exhausted:
                            raise ShopifyApiError(
                                f"HTTP {resp.status} after {attempt} attempts: "
                                f"{_redact(response_text[:200], self._access_token)}"
                            )

                        delay = self._calculate_backoff(attempt)
                        self.logger.warning(
                            "HTTP %s, backoff=%.2fs, attempt=%s",
                            resp.status,
                            delay,
                            attempt,
                        )
                        await asyncio.sleep(delay)
                        continue

                    # Handle other 4xx (Client Errors - no retry)
                    if 400 <= resp.status < 500:
                        response_text = await resp.text()
                        raise ShopifyApiError(
                            f"HTTP {resp.status} (non-retryable): "
                            f"{_redact(response_text[:500], self._access_token)}"
                        )

                    json_data = await resp.json(content_type=None)

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if exhausted:
                    raise ShopifyApiError(
                        f"Network error after {attempt} attempts: {e}"
                    ) from e

                delay = self._calculate_backoff(attempt)
                self.logger.warning(
                    "Network error: %s, backoff=%.2fs, attempt=%s", e, delay, attempt
                )
                await asyncio.sleep(delay)
                continue

            if self._is_throttled(json_data):
                if exhausted:
                    raise ShopifyApiError(
                        f"GraphQL throttled after {attempt} attempts"
                    )
                delay = self._calculate_backoff(attempt)
                self.logger.warning(
                    "GraphQL THROTTLED, backoff=%.2fs, attempt=%s", delay, attempt
                )
                await asyncio.sleep(delay)
                continue

            return json_data

    @staticmethod
    def _retry_after(value: Optional[str]) -> Optional[float]:
        """Seconds from a Retry-After header; None if absent or not numeric."""
        if not value:
            return None
        try:
            return max(float(value), 0.0)
        except ValueError:
            return None

    @staticmethod
    def _is_throttled(json_data: dict) -> bool:
        errors = json_data.get("errors") if isinstance(json_data, dict) else None
        if not isinstance(errors, list):
            return False
        for error in errors:
            extensions = error.get("extensions") if isinstance(error, dict) else None
            if isinstance(extensions, dict) and extensions.get("code") == "THROTTLED":
                return True
        return False

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff with jitter.

        Args:
            attempt: Current retry attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = min(
            self.RETRY_BASE_DELAY * (self.RETRY_MULTIPLIER ** (attempt - 1)),
            self.RETRY_MAX_DELAY,
        )
        jitter = random.uniform(0, self.RETRY_JITTER_MS / 1000.0)
        return delay + jitter


def require_data(response: dict, root_field: str) -> dict:
    """Return ``response["data"][root_field]`` or raise.

    Root-level ``errors`` are checked before data is accessed.

    Raises:
        ShopifyGraphQLError: If the envelope carries root ``errors``
        ShopifyResponseError: If the expected field is missing
    """
    if not isinstance(response, dict):
        raise ShopifyResponseError(f"Malformed GraphQL response for {root_field}")

    errors = response.get("errors")
    if errors:
        messages = [
            e.get("message", str(e)) if isinstance(e, dict) else str(e)
            for e in errors
        ]
        raise ShopifyGraphQLError(f"GraphQL root errors: {'; '.join(messages)}")

    data = response.get("data")
    if not isinstance(data, dict) or root_field not in data:
        raise ShopifyResponseError(f"Response missing data.{root_field}")
    return data[root_field]


def user_error_messages(user_errors: Optional[list]) -> list[str]:
    """Flatten ``userErrors`` into their message strings."""
    messages: list[str] = []
    for error in user_errors or []:
        if isinstance(error, dict):
            messages.append(str(error.get("message", error)))
        else:
            messages.append(str(error))
    return messages
