# =============================================================================
# File: msk_sync/publisher/event_publisher.py
# Description: Encode records and publish them on the new/updated topics
# =============================================================================

from __future__ import annotations

import logging
from typing import Optional

from redis.exceptions import RedisError

from msk_sync.common.exceptions.exceptions import BusConnectionError, PublishError
from msk_sync.config.bus_config import BusConfig
from msk_sync.config.reliability_config import RetryConfig
from msk_sync.domain.enums import TopicKind
from msk_sync.domain.records import SampleRecord
from msk_sync.infra.bus.transport_adapter import BusTransport
from msk_sync.infra.reliability.retry import retry_async
from msk_sync.wire.record_codec import RecordCodec

log = logging.getLogger("msk_sync.publisher.event_publisher")

# Transport failures worth retrying; anything else is a bug and propagates
TRANSIENT_TRANSPORT_ERRORS = (RedisError, OSError, BusConnectionError)


class EventPublisher:
    """
    record -> wire bytes -> bus topic derived from the event kind.

    Encoding errors propagate immediately (WireEncodeError). Transport errors
    are retried with backoff; once retries are exhausted the payload is
    dead-lettered and PublishError is raised.
    """

    def __init__(
            self,
            bus: BusTransport,
            config: BusConfig,
            codec: Optional[RecordCodec] = None,
            retry_config: Optional[RetryConfig] = None,
    ):
        self._bus = bus
        self._config = config
        self._codec = codec or RecordCodec()
        self._retry_config = retry_config or config.publish_retry()
        self.published_count = 0
        self.dead_lettered_count = 0

    def topic_for(self, kind: TopicKind) -> str:
        return self._config.topic_for(kind)

    async def publish(self, record: SampleRecord, topic_kind: TopicKind) -> str:
        """
        Publish one record.

        Returns:
            The topic the record was published on.
        """
        topic = self.topic_for(topic_kind)
        payload = self._codec.encode(record)

        try:
            await retry_async(
                self._bus.publish,
                topic,
                payload,
                retry_config=self._retry_config,
                context=f"publish {record.identity} to {topic}",
                retry_on=TRANSIENT_TRANSPORT_ERRORS,
            )
        except TRANSIENT_TRANSPORT_ERRORS as e:
            await self._bus.push_dead_letter(topic, payload, f"{type(e).__name__}: {e}")
            self.dead_lettered_count += 1
            raise PublishError(
                f"Publishing {record.identity} to {topic} failed: {e}",
                topic=topic,
                dead_lettered=True,
            ) from e

        self.published_count += 1
        log.info(f"Sent {record.identity} on {topic}")
        return topic
