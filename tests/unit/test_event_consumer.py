"""Tests for EventConsumer in aggregate and single-topic mode."""

import asyncio

import pytest

from msk_sync.common.exceptions.exceptions import WireDecodeError
from msk_sync.subscriber.event_consumer import EventConsumer
from msk_sync.subscriber.snapshot_file import SnapshotFile
from msk_sync.subscriber.snapshot_reconciler import SnapshotReconciler
from msk_sync.wire.record_codec import RecordCodec
from tests.conftest import make_record


@pytest.fixture()
async def reconciler(tmp_path) -> SnapshotReconciler:
    reconciler = SnapshotReconciler(SnapshotFile(tmp_path / "master.json"))
    await reconciler.load()
    return reconciler


class TestEventConsumer:

    async def test_aggregate_mode_reconciles_decoded_record(self, reconciler):
        consumer = EventConsumer(reconciler=reconciler)
        record = make_record("S-1")

        decoded = await consumer.handle_message("channels.insertNewChannel", RecordCodec().encode(record))

        assert decoded == record
        assert reconciler.entries() == [record]
        assert consumer.aggregates
        assert consumer.received_count == 1

    async def test_single_topic_mode_never_touches_snapshot(self, tmp_path):
        consumer = EventConsumer()

        await consumer.handle_message("channels.insertUpdateChannel", RecordCodec().encode(make_record()))

        assert not consumer.aggregates
        assert consumer.received_count == 1
        assert not (tmp_path / "master.json").exists()

    async def test_malformed_payload_raises_and_leaves_snapshot_alone(self, reconciler):
        consumer = EventConsumer(reconciler=reconciler)
        await consumer.handle_message("channels.insertNewChannel", RecordCodec().encode(make_record("S-1")))

        with pytest.raises(WireDecodeError):
            await consumer.handle_message("channels.insertNewChannel", b"\x00garbage")

        assert [r.identity for r in reconciler.entries()] == ["S-1"]
        assert consumer.received_count == 1

    async def test_concurrent_deliveries_apply_in_arrival_order(self, reconciler):
        consumer = EventConsumer(reconciler=reconciler)
        codec = RecordCodec()
        payloads = [
            codec.encode(make_record("A", tumor_vaf=0.1)),
            codec.encode(make_record("B")),
            codec.encode(make_record("A", tumor_vaf=0.9)),
        ]

        await asyncio.gather(*(consumer.handle_message("channels.insertNewChannel", p) for p in payloads))

        entries = reconciler.entries()
        assert [r.identity for r in entries] == ["B", "A"]
        assert entries[1].snv_variants[0].tumor_vaf == 0.9
