# =============================================================================
# File: msk_sync/config/sync_config.py
# Description: Publisher and subscriber runtime settings
# =============================================================================

from functools import lru_cache

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from msk_sync.common.base.base_config import BaseConfig, BASE_CONFIG_DICT


class PublisherConfig(BaseConfig):
    """
    Publish-side run settings.

    Environment variable prefix: PUBLISHER_
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='PUBLISHER_',
    )

    input_file: str = Field(default="fetch_shorter.json", description="Fetch JSON with a `results` list")
    republish_unchanged: bool = Field(
        default=True,
        description="Re-announce unchanged samples on the new-record topic",
    )
    fail_fast: bool = Field(
        default=False,
        description="Abort the batch on the first failing record instead of isolating it",
    )


class SubscriberConfig(BaseConfig):
    """
    Subscribe-side settings.

    Environment variable prefix: SUBSCRIBER_
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='SUBSCRIBER_',
    )

    snapshot_file: str = Field(default="master.json", description="Consolidated snapshot output path")
    channel: str = Field(default="channels.*", description="Topic or pattern to subscribe to")
    reset_snapshot_on_start: bool = Field(
        default=True,
        description="Truncate the snapshot at startup instead of loading it as prior state",
    )


@lru_cache(maxsize=1)
def get_publisher_config() -> PublisherConfig:
    """Get publisher configuration singleton (cached)."""
    return PublisherConfig()


@lru_cache(maxsize=1)
def get_subscriber_config() -> SubscriberConfig:
    """Get subscriber configuration singleton (cached)."""
    return SubscriberConfig()


def reset_sync_configs() -> None:
    """Reset config singletons (for testing)."""
    get_publisher_config.cache_clear()
    get_subscriber_config.cache_clear()
