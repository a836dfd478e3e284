# =============================================================================
# File: msk_sync/config/store_config.py
# Description: Configuration for the PostgreSQL record store
# =============================================================================

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import SettingsConfigDict

from msk_sync.common.base.base_config import BaseConfig, BASE_CONFIG_DICT


class StoreConfig(BaseConfig):
    """
    Record store connection settings.

    Environment variable prefix: RECORD_STORE_
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='RECORD_STORE_',
    )

    dsn: SecretStr = Field(
        default=SecretStr("postgresql://localhost:5432/msk"),
        description="PostgreSQL DSN for the record store",
    )
    table_name: str = Field(default="testing", description="Table holding stored sample versions")
    connect_timeout_seconds: float = Field(
        default=20.0,
        description="Bounded timeout for establishing the record store connection",
    )
    command_timeout_seconds: float = Field(default=60.0, description="Per-query timeout")
    pool_min_size: int = Field(default=1, description="Minimum pool connections")
    pool_max_size: int = Field(default=4, description="Maximum pool connections")

    @field_validator("table_name")
    @classmethod
    def _validate_table_name(cls, value: str) -> str:
        # Interpolated into SQL, so only plain identifiers are allowed
        if not value.replace("_", "").isalnum() or value[0].isdigit():
            raise ValueError(f"table_name must be a plain SQL identifier, got {value!r}")
        return value


@lru_cache(maxsize=1)
def get_store_config() -> StoreConfig:
    """Get record store configuration singleton (cached)."""
    return StoreConfig()


def reset_store_config() -> None:
    """Reset config singleton (for testing)."""
    get_store_config.cache_clear()
