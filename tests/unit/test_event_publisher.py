"""Tests for EventPublisher: topic routing, retry, dead-lettering."""

import pytest

from msk_sync.common.exceptions.exceptions import PublishError
from msk_sync.domain.enums import TopicKind
from msk_sync.publisher.event_publisher import EventPublisher
from msk_sync.wire.record_codec import RecordCodec
from tests.conftest import make_record


class TestEventPublisher:

    async def test_new_records_go_to_insert_new_channel(self, bus, bus_config, fast_retry):
        publisher = EventPublisher(bus, bus_config, retry_config=fast_retry)

        topic = await publisher.publish(make_record(), TopicKind.NEW)

        assert topic == "channels.insertNewChannel"
        assert bus.topics_published() == ["channels.insertNewChannel"]
        assert publisher.published_count == 1

    async def test_updated_records_go_to_insert_update_channel(self, bus, bus_config, fast_retry):
        publisher = EventPublisher(bus, bus_config, retry_config=fast_retry)

        topic = await publisher.publish(make_record(), TopicKind.UPDATED)

        assert topic == "channels.insertUpdateChannel"

    async def test_payload_decodes_to_published_record(self, bus, bus_config, fast_retry):
        record = make_record(tumor_vaf=0.44)

        await EventPublisher(bus, bus_config, retry_config=fast_retry).publish(record, TopicKind.NEW)

        assert RecordCodec().decode(bus.published[0].payload) == record

    async def test_transient_failure_is_retried(self, bus, bus_config, fast_retry):
        bus.fail_next_publishes(2)
        publisher = EventPublisher(bus, bus_config, retry_config=fast_retry)

        await publisher.publish(make_record(), TopicKind.NEW)

        assert bus.publish_attempts == 3
        assert len(bus.published) == 1
        assert bus.dead_letters == []

    async def test_exhausted_retries_dead_letter_and_raise(self, bus, bus_config, fast_retry):
        bus.fail_next_publishes(5)
        publisher = EventPublisher(bus, bus_config, retry_config=fast_retry)

        with pytest.raises(PublishError) as exc_info:
            await publisher.publish(make_record(), TopicKind.UPDATED)

        assert exc_info.value.dead_lettered is True
        assert exc_info.value.topic == "channels.insertUpdateChannel"
        assert bus.publish_attempts == 3
        assert len(bus.dead_letters) == 1
        assert bus.dead_letters[0].topic == "channels.insertUpdateChannel"
        assert "ConnectionError" in bus.dead_letters[0].error
        assert publisher.dead_lettered_count == 1

    async def test_non_transport_errors_are_not_retried(self, bus, bus_config, fast_retry):
        bus.fail_next_publishes(1, error=RuntimeError("bug"))
        publisher = EventPublisher(bus, bus_config, retry_config=fast_retry)

        with pytest.raises(RuntimeError):
            await publisher.publish(make_record(), TopicKind.NEW)

        assert bus.publish_attempts == 1
        assert bus.dead_letters == []

    async def test_custom_namespace(self, bus, bus_config, fast_retry):
        config = bus_config.with_overrides(channel_namespace="msk")

        topic = await EventPublisher(bus, config, retry_config=fast_retry).publish(make_record(), TopicKind.NEW)

        assert topic == "msk.insertNewChannel"
