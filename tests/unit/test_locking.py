"""Unit tests for the per-shop run lock."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from metaobject_migrator.migration.importer import MetaobjectImporter
from metaobject_migrator.migration.locking import lock_key_for, shop_run_lock
from metaobject_migrator.schemas.export_document import ExportDocument, ExportEntry
from metaobject_migrator.shopify.exceptions import MigrationLockedError


def _mock_lock(acquired: bool) -> MagicMock:
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired)
    lock.release = AsyncMock()
    return lock


@pytest.mark.asyncio
async def test_no_redis_means_no_lock():
    async with shop_run_lock(None, "shop.myshopify.com"):
        pass


@pytest.mark.asyncio
async def test_lock_acquired_and_released():
    lock = _mock_lock(True)
    redis = MagicMock()

    with patch(
        "metaobject_migrator.migration.locking.AsyncRedisLock", return_value=lock
    ) as lock_cls:
        async with shop_run_lock(redis, "shop.myshopify.com", ttl_seconds=60):
            lock.release.assert_not_awaited()

    lock_cls.assert_called_once_with(
        redis,
        name="metaobject_migrator:shopify:import_lock:shop.myshopify.com",
        timeout=60,
        blocking=False,
    )
    lock.acquire.assert_awaited_once_with(blocking=False)
    lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_lock_released_when_body_raises():
    lock = _mock_lock(True)

    with patch("metaobject_migrator.migration.locking.AsyncRedisLock", return_value=lock):
        with pytest.raises(RuntimeError):
            async with shop_run_lock(MagicMock(), "shop.myshopify.com"):
                raise RuntimeError("boom")

    lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_import_fails_fast_when_lock_is_held(transport, shop):
    lock = _mock_lock(False)
    document = ExportDocument(entries=[ExportEntry(handle="one", type="item")])
    importer = MetaobjectImporter(transport, redis=MagicMock())

    with patch("metaobject_migrator.migration.locking.AsyncRedisLock", return_value=lock):
        with pytest.raises(MigrationLockedError) as exc_info:
            await importer.run_import(document)

    assert exc_info.value.lock_key == lock_key_for("dest-shop.myshopify.com")
    assert shop.upserts == []
    lock.release.assert_not_awaited()
