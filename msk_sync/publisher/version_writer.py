# =============================================================================
# File: msk_sync/publisher/version_writer.py
# Description: Append a timestamped stored version of a record
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from msk_sync.domain.records import SampleRecord
from msk_sync.infra.record_store.base_record_store import RecordStore, StoredVersionId

log = logging.getLogger("msk_sync.publisher.version_writer")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VersionWriter:
    """Insert-only writer; existing stored versions are never touched."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    async def write(self, record: SampleRecord) -> StoredVersionId:
        stored = record.model_copy(update={"last_modified": self._clock()})
        version_id = await self._store.insert_version(stored)
        log.info(f"Inserted document with ID {version_id} for dmp_sample_id {record.identity}")
        return version_id
