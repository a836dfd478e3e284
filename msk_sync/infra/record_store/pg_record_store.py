# =============================================================================
# File: msk_sync/infra/record_store/pg_record_store.py
# Description: PostgreSQL (JSONB) implementation of the record store
# =============================================================================

from __future__ import annotations

import logging
from typing import Optional

import asyncpg

from msk_sync.common.exceptions.exceptions import RecordStoreError
from msk_sync.domain.records import SampleRecord
from msk_sync.infra.persistence.pg_client import close_pool
from msk_sync.infra.record_store.base_record_store import RecordStore, StoredVersionId

log = logging.getLogger("msk_sync.infra.pg_record_store")


class PostgresRecordStore(RecordStore):
    """
    One row per stored version:

        id            BIGSERIAL   store-assigned version id
        dmp_sample_id TEXT        record identity
        last_modified TIMESTAMPTZ assigned by the version writer
        document      JSONB       record content without last_modified
    """

    def __init__(self, pool: asyncpg.Pool, table_name: str = "testing"):
        self._pool = pool
        self._table = table_name

    async def ensure_schema(self) -> None:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._table} (
                        id BIGSERIAL PRIMARY KEY,
                        dmp_sample_id TEXT NOT NULL,
                        last_modified TIMESTAMPTZ NOT NULL,
                        document JSONB NOT NULL
                    )
                    """
                )
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS {self._table}_identity_latest_idx "
                    f"ON {self._table} (dmp_sample_id, last_modified DESC)"
                )
        except (OSError, asyncpg.PostgresError) as e:
            raise RecordStoreError(f"Failed to prepare table {self._table}: {e}") from e
        log.info(f"Record store table '{self._table}' checked/applied")

    async def find_latest(self, identity: str) -> Optional[SampleRecord]:
        try:
            row = await self._pool.fetchrow(
                f"SELECT document, last_modified FROM {self._table} "
                f"WHERE dmp_sample_id = $1 ORDER BY last_modified DESC, id DESC LIMIT 1",
                identity,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise RecordStoreError(f"Lookup of {identity} failed: {e}") from e

        if row is None:
            return None

        document = dict(row["document"])
        document["last_modified"] = row["last_modified"]
        try:
            return SampleRecord.model_validate(document)
        except ValueError as e:
            raise RecordStoreError(f"Stored document for {identity} is not a valid record: {e}") from e

    async def insert_version(self, record: SampleRecord) -> StoredVersionId:
        if record.last_modified is None:
            raise ValueError("insert_version requires last_modified to be set")

        document = record.model_dump(mode="json", exclude={"last_modified"})
        try:
            version_id = await self._pool.fetchval(
                f"INSERT INTO {self._table} (dmp_sample_id, last_modified, document) "
                f"VALUES ($1, $2, $3) RETURNING id",
                record.identity,
                record.last_modified,
                document,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise RecordStoreError(f"Insert of {record.identity} failed: {e}") from e
        return int(version_id)

    async def close(self) -> None:
        await close_pool(self._pool)
