# =============================================================================
# File: msk_sync/subscriber/event_consumer.py
# Description: Decode bus deliveries and hand them to the reconciler
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from msk_sync.domain.records import SampleRecord
from msk_sync.subscriber.snapshot_reconciler import SnapshotReconciler
from msk_sync.wire.record_codec import RecordCodec

log = logging.getLogger("msk_sync.subscriber.consumer")


class EventConsumer:
    """
    One handle_message() call per delivery.

    With a reconciler (aggregate subscription) every decoded record is folded
    into the snapshot; without one the consumer only observes and logs.
    Decode, reconcile and persist run under one lock, so concurrent
    deliveries are applied one at a time in arrival order.

    Malformed payloads raise WireDecodeError; the transport logs and
    dead-letters the delivery.
    """

    def __init__(self, codec: Optional[RecordCodec] = None, reconciler: Optional[SnapshotReconciler] = None):
        self._codec = codec or RecordCodec()
        self._reconciler = reconciler
        self._lock = asyncio.Lock()
        self.received_count = 0

    @property
    def aggregates(self) -> bool:
        return self._reconciler is not None

    async def handle_message(self, topic: str, payload: bytes) -> SampleRecord:
        async with self._lock:
            record = self._codec.decode(payload)
            self.received_count += 1
            log.info(f"Received {record.identity} on {topic}")

            if self._reconciler is not None:
                await self._reconciler.reconcile(record)
            return record
