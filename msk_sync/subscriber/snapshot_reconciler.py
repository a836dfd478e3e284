# =============================================================================
# File: msk_sync/subscriber/snapshot_reconciler.py
# Description: Fold record events into one latest entry per identity
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from msk_sync.domain.records import SampleRecord
from msk_sync.subscriber.snapshot_file import SnapshotFile

log = logging.getLogger("msk_sync.subscriber.reconciler")


class SnapshotReconciler:
    """
    Keyed snapshot: identity -> most recently received record.

    The dict keeps insertion order; replacing an identity removes its entry
    and re-inserts it at the end, so the sequence is ordered from least to
    most recently received. There is no positional index to go stale.

    Every reconcile() rewrites the snapshot file in full. Callers that
    reconcile from several tasks must serialize calls (see EventConsumer).
    """

    def __init__(self, snapshot_file: SnapshotFile, reset_on_start: bool = True):
        self._file = snapshot_file
        self._reset_on_start = reset_on_start
        self._entries: Dict[str, SampleRecord] = {}
        self.replaced_count = 0
        self.appended_count = 0

    async def load(self) -> None:
        """Reset or load the persisted snapshot; call once before reconciling."""
        loop = asyncio.get_running_loop()
        if self._reset_on_start:
            await loop.run_in_executor(None, self._file.reset)
            self._entries = {}
            return

        records = await loop.run_in_executor(None, self._file.read)
        self._entries = {}
        for record in records:
            # Later duplicates win, matching reconcile()
            self._entries.pop(record.identity, None)
            self._entries[record.identity] = record
        log.info(f"Loaded {len(self._entries)} samples from snapshot {self._file.path}")

    def apply(self, record: SampleRecord) -> bool:
        """
        Replace-or-append in memory only.

        Returns:
            True when an earlier version of the identity was replaced.
        """
        replaced = self._entries.pop(record.identity, None) is not None
        self._entries[record.identity] = record
        if replaced:
            self.replaced_count += 1
        else:
            self.appended_count += 1
        return replaced

    async def reconcile(self, record: SampleRecord) -> None:
        if self.apply(record):
            log.info(f"Another version of {record.identity} was already in the snapshot; rewriting old one")

        snapshot = self.entries()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._file.write, snapshot)

    def entries(self) -> List[SampleRecord]:
        return list(self._entries.values())

    def get(self, identity: str) -> Optional[SampleRecord]:
        return self._entries.get(identity)

    def __len__(self) -> int:
        return len(self._entries)
