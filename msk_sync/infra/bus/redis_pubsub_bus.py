# =============================================================================
# File: msk_sync/infra/bus/redis_pubsub_bus.py
# Description: Redis Pub/Sub implementation of the sample event bus
# =============================================================================

"""
RedisPubSubBus - Redis Pub/Sub transport for wire-encoded sample records

Pattern: redis-py official async pub/sub
- One client for PUBLISH and dead-letter lists
- SUBSCRIBE for exact topics, PSUBSCRIBE for wildcard patterns
- Background listener task dispatching each delivery to its handler

Architecture:
    EventPublisher -> RedisPubSubBus.publish(topic, bytes)
                                ↓
                     Redis Pub/Sub (broadcast)
                                ↓
              every subscriber on `channels.*` or an exact topic
                                ↓
              handler(topic, bytes) -> EventConsumer
"""

import asyncio
import json
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError, TimeoutError as RedisTimeoutError

from msk_sync.common.exceptions.exceptions import BusConnectionError
from msk_sync.config.bus_config import BusConfig
from msk_sync.infra.bus.transport_adapter import BusTransport, MessageHandler, is_pattern
from msk_sync.infra.reliability.retry import retry_async

log = logging.getLogger("msk_sync.bus.pubsub")


def _as_str(value: Any) -> str:
    return value.decode('utf-8') if isinstance(value, bytes) else value


class RedisPubSubBus(BusTransport):
    """
    Redis Pub/Sub bus for sample record events.

    Example Usage:
        ```python
        bus = RedisPubSubBus(get_bus_config())
        await bus.connect()

        await bus.subscribe("channels.*", handler)
        await bus.publish("channels.insertNewChannel", payload)
        await bus.run_forever()
        ```
    """

    def __init__(self, config: BusConfig, redis_client: Optional[Any] = None):
        self.config = config
        self.redis_client = redis_client
        self.pubsub: Optional[Any] = None  # redis.asyncio.client.PubSub

        # Subscriptions: channel or pattern -> handler
        self.subscriptions: Dict[str, MessageHandler] = {}

        # State
        self._running = False
        self._listener_task: Optional[asyncio.Task] = None
        self._handler_tasks: Set[asyncio.Task] = set()

        # Metrics
        self._messages_published = 0
        self._messages_received = 0
        self._handler_errors = 0

        # Listener backoff state
        self._consecutive_errors = 0
        self._backoff_delay = 1.0
        self._max_backoff = 60.0
        self._backoff_factor = 1.5
        self._max_consecutive_errors = 20

    # =========================================================================
    # Connection
    # =========================================================================

    def _build_client(self) -> Any:
        # Payloads are raw bytes, so responses are never decoded
        return redis.from_url(
            self.config.url,
            decode_responses=False,
            socket_connect_timeout=self.config.socket_connect_timeout,
        )

    async def connect(self) -> None:
        """
        Connect to Redis, retrying with backoff until the policy gives up.

        Must complete before the first subscribe().
        """
        if self.redis_client is None:
            self.redis_client = self._build_client()

        retry_config = self.config.connect_retry()

        async def _ping() -> None:
            log.info(f"Attempting to connect to bus at {self.config.url}")
            await self.redis_client.ping()

        try:
            await retry_async(
                _ping,
                retry_config=retry_config,
                context="bus connection",
                retry_on=(RedisConnectionError, RedisTimeoutError, OSError),
            )
        except (RedisError, OSError) as e:
            raise BusConnectionError(
                f"Could not connect to bus at {self.config.url} after "
                f"{retry_config.max_attempts} attempts: {e}"
            ) from e

        self.pubsub = self.redis_client.pubsub()
        self._running = True
        log.info("Bus connected - listener will start on first subscription")

    # =========================================================================
    # Publish
    # =========================================================================

    async def publish(self, topic: str, payload: bytes) -> None:
        if self.redis_client is None:
            raise BusConnectionError("Bus not connected, cannot publish")

        start_time = time.time()
        receivers = await self.redis_client.publish(topic, payload)
        self._messages_published += 1

        log.debug(
            f"[PUBLISH] Topic: {topic}, Size: {len(payload)}B, Receivers: {receivers}, "
            f"Latency: {(time.time() - start_time) * 1000:.2f}ms, Total: {self._messages_published}"
        )

    # =========================================================================
    # Subscribe
    # =========================================================================

    async def subscribe(self, topic_or_pattern: str, handler: MessageHandler) -> str:
        """
        Subscribe using SUBSCRIBE (exact) or PSUBSCRIBE (wildcard).

        Note:
            - Handler invoked in a background task per delivery
            - Each subscriber receives ALL messages (broadcast)
        """
        if self.pubsub is None:
            raise BusConnectionError("Bus not connected, call connect() before subscribe()")

        if is_pattern(topic_or_pattern):
            await self.pubsub.psubscribe(topic_or_pattern)
            log.info(f"Subscribed to pattern (PSUBSCRIBE): {topic_or_pattern}")
        else:
            await self.pubsub.subscribe(topic_or_pattern)
            log.info(f"Subscribed to exact topic (SUBSCRIBE): {topic_or_pattern}")

        self.subscriptions[topic_or_pattern] = handler

        # Start listener task if not already running
        # (redis-py listen() terminates immediately if no subscriptions exist)
        if self._listener_task is None or self._listener_task.done():
            self._listener_task = asyncio.create_task(self._listen_loop())
            log.debug("Started listener task after first subscription")

        return f"{topic_or_pattern}::{id(handler)}"

    async def _listen_loop(self) -> None:
        """Background listener with exponential backoff on Redis errors."""
        log.info("Bus listener loop started")

        while self._running:
            try:
                message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)

                if message and message.get('type') in ('pmessage', 'message'):
                    self._dispatch(message)

                # Reset backoff on success
                self._consecutive_errors = 0

            except asyncio.CancelledError:
                log.info("Listener loop cancelled")
                break

            except (RedisError, OSError) as e:
                self._consecutive_errors += 1

                if self._consecutive_errors >= self._max_consecutive_errors:
                    log.critical("Too many consecutive bus errors, stopping listener")
                    self._running = False
                    break

                delay = min(
                    self._backoff_delay * (self._backoff_factor ** (self._consecutive_errors - 1)),
                    self._max_backoff
                )
                # Add jitter (±20%)
                delay = max(0.1, delay + delay * 0.2 * (2 * random.random() - 1))

                log.error(
                    f"Bus listener error (attempt {self._consecutive_errors}): {e}. "
                    f"Retrying in {delay:.2f}s...",
                    exc_info=True
                )
                await asyncio.sleep(delay)

    def _dispatch(self, message: Dict[str, Any]) -> None:
        """Route one delivery to the handler registered for its channel or pattern."""
        topic = _as_str(message['channel'])
        key = _as_str(message['pattern']) if message['type'] == 'pmessage' else topic

        handler = self.subscriptions.get(key)
        if handler is None:
            log.warning(f"No handler for {key}, available handlers: {list(self.subscriptions.keys())}")
            return

        self._messages_received += 1
        task = asyncio.create_task(self._safe_invoke_handler(handler, topic, message['data']))
        self._handler_tasks.add(task)
        task.add_done_callback(self._handler_tasks.discard)

    async def _safe_invoke_handler(self, handler: MessageHandler, topic: str, payload: bytes) -> None:
        """
        Invoke handler, logging and dead-lettering failures.

        Handler errors never stop the listener.
        """
        handler_start_time = time.time()
        try:
            await handler(topic, payload)
            log.debug(
                f"[HANDLER_SUCCESS] Topic: {topic}, "
                f"Latency: {(time.time() - handler_start_time) * 1000:.2f}ms"
            )
        except Exception as e:
            self._handler_errors += 1
            log.error(
                f"[HANDLER_ERROR] Handler error (total: {self._handler_errors}) on {topic}: {e}",
                exc_info=True
            )
            await self.push_dead_letter(topic, payload, f"{type(e).__name__}: {e}")

    # =========================================================================
    # Dead letters
    # =========================================================================

    async def push_dead_letter(self, topic: str, payload: bytes, error: str) -> None:
        """Store a failed payload in a capped Redis list `<dlq_prefix><topic>`."""
        dlq_key = f"{self.config.dlq_prefix}{topic}"
        entry = {
            "topic": topic,
            "payload_hex": bytes(payload).hex(),
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self.redis_client.lpush(dlq_key, json.dumps(entry))
            await self.redis_client.ltrim(dlq_key, 0, self.config.dlq_max_length - 1)
            log.info(f"[DLQ] Message sent to DLQ: {dlq_key}")
        except (RedisError, OSError) as e:
            log.error(f"[DLQ] Failed to send to DLQ {dlq_key}: {e}", exc_info=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run_forever(self) -> None:
        if self._listener_task is None:
            raise BusConnectionError("Nothing subscribed, refusing to block")
        await self._listener_task

    async def close(self) -> None:
        """
        Steps:
        1. Stop listener loop
        2. Wait for in-flight handlers
        3. Unsubscribe and close PubSub and client
        """
        log.info("Shutting down bus...")
        self._running = False

        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass

        if self._handler_tasks:
            await asyncio.gather(*self._handler_tasks, return_exceptions=True)

        if self.pubsub is not None:
            try:
                patterns = [key for key in self.subscriptions if is_pattern(key)]
                channels = [key for key in self.subscriptions if not is_pattern(key)]
                if patterns:
                    await self.pubsub.punsubscribe(*patterns)
                if channels:
                    await self.pubsub.unsubscribe(*channels)
                await self.pubsub.aclose()
            except (RedisError, OSError) as e:
                log.error(f"Error closing pubsub: {e}")

        if self.redis_client is not None:
            try:
                await self.redis_client.aclose()
            except (RedisError, OSError) as e:
                log.warning(f"Error closing bus client: {e}")

        log.info(
            f"Bus shut down - "
            f"Published: {self._messages_published}, "
            f"Received: {self._messages_received}, "
            f"Handler errors: {self._handler_errors}"
        )

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "subscriptions": len(self.subscriptions),
            "messages_published": self._messages_published,
            "messages_received": self._messages_received,
            "handler_errors": self._handler_errors,
        }
