# =============================================================================
# File: msk_sync/infra/bus/transport_adapter.py
# Description: Abstract publish/subscribe transport for wire-encoded records
# =============================================================================
"""
Abstract async transport for the sample event bus.

Payloads are opaque bytes (wire-encoded records). Topic names follow
`<namespace>.<channel>`; subscriptions accept either an exact topic or a
glob pattern (`*`, `?`, `[...]`) such as `channels.*`.
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

MessageHandler = Callable[[str, bytes], Awaitable[None]]


def is_pattern(topic: str) -> bool:
    """True when the subscription needs pattern matching."""
    return any(char in topic for char in "*?[")


class BusTransport(ABC):
    """
    Abstract base transport for record events.

    IMPORTANT: connect() must succeed before the first subscribe(); the
    run_forever() method blocks until the transport is closed or cancelled.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection, retrying with backoff.

        Raises:
            BusConnectionError: when the retry policy gives up
        """

    @abstractmethod
    async def publish(self, topic: str, payload: bytes) -> None:
        """Publish one payload on a topic. Raises on transport failure."""

    @abstractmethod
    async def subscribe(self, topic_or_pattern: str, handler: MessageHandler) -> str:
        """
        Register `handler(topic, payload)` for an exact topic or a pattern.

        Returns:
            Subscription ID
        """

    @abstractmethod
    async def push_dead_letter(self, topic: str, payload: bytes, error: str) -> None:
        """Park a payload that could not be published or handled."""

    @abstractmethod
    async def run_forever(self) -> None:
        """Block while deliveries are dispatched to handlers."""

    @abstractmethod
    async def close(self) -> None:
        """Gracefully shut down, closing connections and background tasks."""

