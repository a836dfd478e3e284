# =============================================================================
# File: msk_sync/infra/persistence/pg_client.py
# Description: AsyncPG pool helper for the record store
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging

import asyncpg

from msk_sync.common.exceptions.exceptions import RecordStoreError
from msk_sync.config.store_config import StoreConfig

log = logging.getLogger("msk_sync.infra.pg_client")


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Initialize connection with JSONB codec for automatic dict<->JSONB conversion"""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )


async def create_pool(config: StoreConfig) -> asyncpg.Pool:
    """
    Create the record store pool within `connect_timeout_seconds`.

    Connection failure is fatal to the caller: no retry is attempted here.
    """
    dsn = config.dsn.get_secret_value()
    log.info(f"Initializing record store PostgreSQL pool (hidden DSN): {dsn.split('@')[-1]}")

    async def _create() -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            command_timeout=config.command_timeout_seconds,
            init=_init_connection,
        )
        # Verify connection with a test query
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return pool

    try:
        pool = await asyncio.wait_for(_create(), timeout=config.connect_timeout_seconds)
    except asyncio.TimeoutError as e:
        raise RecordStoreError(
            f"Timed out after {config.connect_timeout_seconds:.0f}s connecting to the record store"
        ) from e
    except (OSError, asyncpg.PostgresError) as e:
        raise RecordStoreError(f"Record store connection failed: {e}") from e

    log.info(f"Record store PostgreSQL pool ready. Min/Max size: {config.pool_min_size}/{config.pool_max_size}")
    return pool


async def close_pool(pool: asyncpg.Pool) -> None:
    """Close the pool gracefully."""
    if pool.is_closing():
        return
    log.info("Closing record store PostgreSQL pool...")
    try:
        await pool.close()
        log.info("Record store PostgreSQL pool closed.")
    except Exception as e:
        log.error(f"Error closing record store pool: {e}", exc_info=True)
