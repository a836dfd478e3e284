"""Tests for PostgresRecordStore and the pool helper, using a mocked asyncpg pool."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from msk_sync.common.exceptions.exceptions import RecordStoreError
from msk_sync.config.store_config import StoreConfig
from msk_sync.infra.persistence import pg_client
from msk_sync.infra.record_store.pg_record_store import PostgresRecordStore
from msk_sync.wire.record_codec import to_interchange
from tests.conftest import make_record


def _make_pool() -> MagicMock:
    pool = MagicMock()
    pool.fetchrow = AsyncMock(return_value=None)
    pool.fetchval = AsyncMock(return_value=1)
    pool.close = AsyncMock()
    pool.is_closing = MagicMock(return_value=False)

    conn = MagicMock()
    conn.execute = AsyncMock()
    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=False)
    pool.acquire = MagicMock(return_value=acquire)
    pool.conn = conn
    return pool


class TestPostgresRecordStore:

    async def test_find_latest_returns_none_for_unknown_identity(self):
        pool = _make_pool()

        assert await PostgresRecordStore(pool).find_latest("S-1") is None

        query, identity = pool.fetchrow.await_args.args
        assert "ORDER BY last_modified DESC" in query
        assert "LIMIT 1" in query
        assert identity == "S-1"

    async def test_find_latest_restores_last_modified(self):
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        document = to_interchange(make_record("S-1"))
        pool = _make_pool()
        pool.fetchrow.return_value = {"document": document, "last_modified": stamp}

        record = await PostgresRecordStore(pool).find_latest("S-1")

        assert record == make_record("S-1", last_modified=stamp)

    async def test_insert_version_stores_document_without_last_modified(self):
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        pool = _make_pool()
        pool.fetchval.return_value = 42

        version_id = await PostgresRecordStore(pool, "samples").insert_version(make_record("S-1", last_modified=stamp))

        assert version_id == 42
        query, identity, last_modified, document = pool.fetchval.await_args.args
        assert query.startswith("INSERT INTO samples")
        assert identity == "S-1"
        assert last_modified == stamp
        assert "last_modified" not in document
        assert document["meta_data"]["dmp_sample_id"] == "S-1"

    async def test_insert_version_requires_last_modified(self):
        with pytest.raises(ValueError):
            await PostgresRecordStore(_make_pool()).insert_version(make_record())

    async def test_driver_errors_become_record_store_errors(self):
        pool = _make_pool()
        pool.fetchrow.side_effect = OSError("connection lost")

        with pytest.raises(RecordStoreError, match="connection lost"):
            await PostgresRecordStore(pool).find_latest("S-1")

    async def test_ensure_schema_creates_table_and_index(self):
        pool = _make_pool()

        await PostgresRecordStore(pool, "testing").ensure_schema()

        statements = [call.args[0] for call in pool.conn.execute.await_args_list]
        assert "CREATE TABLE IF NOT EXISTS testing" in statements[0]
        assert "(dmp_sample_id, last_modified DESC)" in statements[1]

    async def test_close_closes_pool(self):
        pool = _make_pool()

        await PostgresRecordStore(pool).close()

        pool.close.assert_awaited_once()


class TestCreatePool:

    async def test_connection_failure_is_fatal(self, monkeypatch):
        monkeypatch.setattr(pg_client.asyncpg, "create_pool", AsyncMock(side_effect=OSError("refused")))

        with pytest.raises(RecordStoreError, match="refused"):
            await pg_client.create_pool(StoreConfig(_env_file=None))

    async def test_connection_timeout_is_bounded(self, monkeypatch):
        async def _hang(**kwargs):
            await asyncio.sleep(10)

        monkeypatch.setattr(pg_client.asyncpg, "create_pool", _hang)

        with pytest.raises(RecordStoreError, match="Timed out"):
            await pg_client.create_pool(StoreConfig(_env_file=None, connect_timeout_seconds=0.05))
