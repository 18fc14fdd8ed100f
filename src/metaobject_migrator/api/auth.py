"""API key dependency for the job API."""
import logging
import secrets
from typing import Annotated

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config import load_api_key


logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "X-MIGRATOR-API-KEY"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def _keys_match(presented: str, expected: str) -> bool:
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


async def require_api_key(
    api_key: Annotated[str | None, Security(api_key_header)] = None
) -> str:
    """Check the presented key against ``MIGRATOR_API_KEY``.

    Raises:
        HTTPException: 503 while no key is configured, 401 if the header is
            missing or wrong
    """
    expected_key = load_api_key()
    if expected_key is None:
        logger.error("Rejecting job request: MIGRATOR_API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job API is not configured",
        )

    # same 401 for missing and invalid keys
    if not api_key or not _keys_match(api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "API-Key"},
        )

    return api_key
