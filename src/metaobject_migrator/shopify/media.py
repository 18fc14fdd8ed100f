"""Create MediaImage files from external image URLs."""
import logging
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel

from .client import ShopifyGraphQLClient, user_error_messages
from .graphql_strings import MUTATION_FILE_CREATE


logger = logging.getLogger(__name__)

DEFAULT_ALT = "Imported Metaobject Backreference Image"


class ImageUploadResult(BaseModel):
    id: Optional[str] = None
    status: Literal["success", "error", "processing"]
    error: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


async def image_url_to_media_image_gid(
    client: ShopifyGraphQLClient,
    image_url: str,
    alt: Optional[str] = None,
) -> ImageUploadResult:
    """Create a file from ``image_url`` and return its MediaImage GID.

    Shopify accepts the file while it is still processing, so a
    ``processing`` result already carries a usable id.

    Raises:
        ShopifyApiError: If the transport gives up after retries
    """
    if not _is_valid_url(image_url):
        return ImageUploadResult(status="error", error="Invalid image URL format")

    response = await client.request(
        MUTATION_FILE_CREATE,
        {
            "files": [
                {
                    "contentType": "IMAGE",
                    "originalSource": image_url,
                    "alt": alt or DEFAULT_ALT,
                    "duplicateResolutionMode": "APPEND_UUID",
                }
            ]
        },
    )

    errors = response.get("errors")
    if errors:
        messages = [e.get("message", str(e)) for e in errors]
        return ImageUploadResult(
            status="error", error=f"GraphQL errors: {'; '.join(messages)}"
        )

    payload = (response.get("data") or {}).get("fileCreate") or {}
    user_errors = user_error_messages(payload.get("userErrors"))
    if user_errors:
        return ImageUploadResult(
            status="error", error=f"File creation errors: {'; '.join(user_errors)}"
        )

    files = payload.get("files") or []
    if not files:
        return ImageUploadResult(status="error", error="No files were created")

    created = files[0]
    image = created.get("image") or {}
    logger.debug("Created file %s from %s", created.get("id"), image_url)
    return ImageUploadResult(
        id=created.get("id"),
        status="success" if created.get("fileStatus") == "READY" else "processing",
        width=image.get("width"),
        height=image.get("height"),
    )
