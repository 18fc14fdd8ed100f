"""Runtime settings loaded from environment variables."""
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, PositiveInt

from .shopify.exceptions import MigratorConfigError


DEFAULT_API_VERSION = "2025-07"


class MigratorSettings(BaseModel):
    """Connection details and tunables for one migrator process."""

    shop_domain: str = Field(..., description="Store host, e.g. mystore.myshopify.com")
    access_token: str = Field(..., repr=False, description="Admin API access token")
    api_version: str = Field(DEFAULT_API_VERSION, description="Admin API version")
    environment: str = Field("default", description="Environment label for documents")
    output_dir: Path = Field(Path("outputs"), description="Export/summary directory")
    page_size: PositiveInt = Field(250, description="Listing page size")
    resolve_chunk_size: PositiveInt = Field(
        250, description="Max handles per OR-filter resolution query"
    )
    backref_chunk_size: PositiveInt = Field(
        25, description="Metafields per metafieldsSet call"
    )
    max_retries: PositiveInt = Field(5, description="Transport retry bound")
    redis_url: Optional[str] = Field(None, description="Enables per-shop run lock")
    api_key: Optional[str] = Field(None, repr=False, description="Job API key")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise MigratorConfigError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> MigratorSettings:
    """Build settings from the process environment.

    Raises:
        MigratorConfigError: If the store domain or token is missing, or a
            numeric setting is not a positive integer.
    """
    shop_domain = os.getenv("SHOPIFY_STORE_DOMAIN")
    access_token = os.getenv("SHOPIFY_ADMIN_ACCESS_TOKEN") or os.getenv(
        "SHOPIFY_ADMIN_API_TOKEN"
    )

    if not shop_domain:
        raise MigratorConfigError("Missing SHOPIFY_STORE_DOMAIN in environment")
    if not access_token:
        raise MigratorConfigError("Missing SHOPIFY_ADMIN_ACCESS_TOKEN in environment")

    try:
        return MigratorSettings(
            shop_domain=shop_domain,
            access_token=access_token,
            api_version=os.getenv("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
            environment=os.getenv("MIGRATOR_ENVIRONMENT", "default"),
            output_dir=Path(os.getenv("MIGRATOR_OUTPUT_DIR", "outputs")),
            page_size=_env_int("MIGRATOR_PAGE_SIZE", 250),
            resolve_chunk_size=_env_int("MIGRATOR_RESOLVE_CHUNK_SIZE", 250),
            backref_chunk_size=_env_int("MIGRATOR_BACKREF_CHUNK_SIZE", 25),
            max_retries=_env_int("MIGRATOR_MAX_RETRIES", 5),
            redis_url=os.getenv("REDIS_URL") or None,
            api_key=load_api_key(),
        )
    except ValueError as exc:
        # pydantic.ValidationError subclasses ValueError
        raise MigratorConfigError(f"Invalid migrator settings: {exc}") from exc


def load_api_key() -> Optional[str]:
    """Key the job API expects in ``X-MIGRATOR-API-KEY``, or None if unset.

    Unlike ``load_settings``, store credentials are not required.
    """
    return os.getenv("MIGRATOR_API_KEY") or None
