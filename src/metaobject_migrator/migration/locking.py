"""Per-shop run lock so two imports never write the same store at once."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from redis.asyncio.lock import Lock as AsyncRedisLock

from ..shopify.exceptions import MigrationLockedError


logger = logging.getLogger(__name__)

LOCK_TTL_SECONDS = 1800  # 30 minutes


def lock_key_for(shop_domain: str) -> str:
    return f"metaobject_migrator:shopify:import_lock:{shop_domain}"


@asynccontextmanager
async def shop_run_lock(
    redis: Optional[Redis],
    shop_domain: str,
    ttl_seconds: int = LOCK_TTL_SECONDS,
) -> AsyncIterator[None]:
    """Hold the shop's run lock for the duration of the block.

    With ``redis`` set to None no lock is taken.

    Raises:
        MigrationLockedError: If another run holds the lock (fail fast)
    """
    if redis is None:
        yield
        return

    lock_key = lock_key_for(shop_domain)
    lock = AsyncRedisLock(redis, name=lock_key, timeout=ttl_seconds, blocking=False)

    acquired = await lock.acquire(blocking=False)
    if not acquired:
        raise MigrationLockedError(shop_domain, lock_key)

    logger.info("Acquired run lock for shop=%s", shop_domain)
    try:
        yield
    finally:
        try:
            await lock.release()
            logger.info("Released run lock for shop=%s", shop_domain)
        except Exception as e:
            logger.error(f"Failed to release lock: {e}")
