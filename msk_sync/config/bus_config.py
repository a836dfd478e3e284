# =============================================================================
# File: msk_sync/config/bus_config.py
# Description: Configuration for the Redis Pub/Sub bus transport
# =============================================================================

from functools import lru_cache

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from msk_sync.common.base.base_config import BaseConfig, BASE_CONFIG_DICT
from msk_sync.config.reliability_config import RetryConfig, ReliabilityConfigs
from msk_sync.domain.enums import TopicKind


class BusConfig(BaseConfig):
    """
    Bus transport settings and topic namespace.

    Topics are `<namespace>.<channel>`; the aggregate pattern is `<namespace>.*`.

    Environment variable prefix: BUS_
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='BUS_',
    )

    # =========================================================================
    # Connection
    # =========================================================================
    url: str = Field(default="redis://localhost:6379/0", description="Redis URL of the bus")
    socket_connect_timeout: float = Field(default=5.0, description="Socket connect timeout (seconds)")

    # =========================================================================
    # Topic namespace
    # =========================================================================
    channel_namespace: str = Field(default="channels", description="Topic namespace prefix")
    new_channel: str = Field(default="insertNewChannel", description="Channel for first-sight records")
    update_channel: str = Field(default="insertUpdateChannel", description="Channel for revisions")

    # =========================================================================
    # Dead letters
    # =========================================================================
    dlq_prefix: str = Field(default="msk:dlq:", description="Redis list prefix for dead letters")
    dlq_max_length: int = Field(default=1000, description="Dead letters kept per topic")

    # =========================================================================
    # Retry policies
    # =========================================================================
    connect_max_attempts: int = Field(default=30, description="Give up connecting after N attempts")
    connect_initial_delay_ms: int = Field(default=500)
    connect_max_delay_ms: int = Field(default=10000)
    publish_max_attempts: int = Field(default=3, description="Publish attempts before dead-lettering")
    publish_initial_delay_ms: int = Field(default=100)

    def topic_for(self, kind: TopicKind) -> str:
        """Topic name for an event kind."""
        channel = self.new_channel if kind is TopicKind.NEW else self.update_channel
        return f"{self.channel_namespace}.{channel}"

    @property
    def aggregate_pattern(self) -> str:
        """Wildcard matching every event topic."""
        return f"{self.channel_namespace}.*"

    def connect_retry(self) -> RetryConfig:
        return ReliabilityConfigs.bus_connect_retry(
            max_attempts=self.connect_max_attempts,
            initial_delay_ms=self.connect_initial_delay_ms,
            max_delay_ms=self.connect_max_delay_ms,
        )

    def publish_retry(self) -> RetryConfig:
        return ReliabilityConfigs.bus_publish_retry(
            max_attempts=self.publish_max_attempts,
            initial_delay_ms=self.publish_initial_delay_ms,
        )


@lru_cache(maxsize=1)
def get_bus_config() -> BusConfig:
    """Get bus configuration singleton (cached)."""
    return BusConfig()


def reset_bus_config() -> None:
    """Reset config singleton (for testing)."""
    get_bus_config.cache_clear()
