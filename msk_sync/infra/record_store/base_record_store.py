# =============================================================================
# File: msk_sync/infra/record_store/base_record_store.py
# Description: Abstract base class for the authoritative record store
# =============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from msk_sync.domain.records import SampleRecord

# Store-assigned identifier of one stored version
StoredVersionId = int


class RecordStore(ABC):
    """
    Append-only history of sample records.

    Stored versions are never updated or deleted; the version with the
    greatest `last_modified` is the current one for its identity.

    Implementations:
        - PostgresRecordStore (asyncpg, JSONB documents)
    """

    @abstractmethod
    async def find_latest(self, identity: str) -> Optional[SampleRecord]:
        """
        Latest stored version for an identity.

        Returns:
            The record with `last_modified` populated, or None when the
            identity has never been stored.

        Raises:
            RecordStoreError: on any store failure
        """

    @abstractmethod
    async def insert_version(self, record: SampleRecord) -> StoredVersionId:
        """
        Append a new stored version. `record.last_modified` must be set.

        Raises:
            RecordStoreError: on any store failure
        """

    async def ensure_schema(self) -> None:
        """Create backing structures if needed. Default: nothing to do."""

    async def close(self) -> None:
        """Release connections. Default: nothing to do."""
