# =============================================================================
# File: msk_sync/publisher/change_detector.py
# Description: Classify a candidate record as NEW, CHANGED or UNCHANGED
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from msk_sync.domain.enums import ChangeKind
from msk_sync.domain.records import SampleRecord
from msk_sync.infra.record_store.base_record_store import RecordStore

log = logging.getLogger("msk_sync.publisher.change_detector")


@dataclass(frozen=True)
class Classification:
    kind: ChangeKind
    previous: Optional[SampleRecord] = None


class ChangeDetector:
    """
    Compares a candidate with the latest stored version of the same identity.

    Equality is structural over every field except `last_modified`, which is
    storage metadata and is cleared on both sides before comparing.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    async def classify(self, candidate: SampleRecord) -> Classification:
        previous = await self._store.find_latest(candidate.identity)

        if previous is None:
            log.info(f"No document with dmp_sample_id {candidate.identity} found")
            return Classification(ChangeKind.NEW)

        if candidate.content_equals(previous):
            log.info(f"Document with dmp_sample_id {candidate.identity} is the same")
            return Classification(ChangeKind.UNCHANGED, previous)

        log.info(f"Document with dmp_sample_id {candidate.identity} found but is different")
        return Classification(ChangeKind.CHANGED, previous)
