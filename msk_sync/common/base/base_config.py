# =============================================================================
# File: msk_sync/common/base/base_config.py
# BaseConfig - Foundation for all msk-sync configuration classes
#
# Pydantic v2 settings:
# - SettingsConfigDict (not deprecated class Config)
# - Automatic .env file loading
# - Case-insensitive environment variables
# - Nested config support via __ delimiter
# - SecretStr for sensitive values
# - @lru_cache singleton pattern for factory functions
#
# Usage:
#     class MyConfig(BaseConfig):
#         model_config = SettingsConfigDict(
#             **BASE_CONFIG_DICT,
#             env_prefix="MY_"
#         )
#         api_key: SecretStr
#         timeout_ms: int = 5000
#
#     @lru_cache(maxsize=1)
#     def get_my_config() -> MyConfig:
#         return MyConfig()
# =============================================================================

from typing import Any, Dict

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_CONFIG_DICT: Dict[str, Any] = dict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    env_nested_delimiter="__",
)


class BaseConfig(BaseSettings):
    """Base configuration class for all msk-sync configs.

    All configuration classes inherit from this base to ensure:
    1. Consistent .env file loading
    2. Case-insensitive environment variable matching
    3. Proper handling of nested configs via __ delimiter

    Environment Variable Naming:
    - Use component prefixes (RECORD_STORE_, BUS_, PUBLISHER_, SUBSCRIBER_)
    - Nested values use __ delimiter

    Secrets Handling:
    - Sensitive fields (DSNs with passwords) use SecretStr
    - Access raw value via .get_secret_value() when needed
    """

    model_config = SettingsConfigDict(**BASE_CONFIG_DICT)

    def with_overrides(self, **overrides: Any) -> "BaseConfig":
        """Return a copy with non-None overrides applied (CLI flags)."""
        updates = {key: value for key, value in overrides.items() if value is not None}
        if not updates:
            return self
        # Re-validate so overrides go through the same field validators
        data = self.model_dump()
        data.update(updates)
        return type(self).model_validate(data)

    def __repr__(self) -> str:
        """Safe repr that masks secrets."""
        class_name = self.__class__.__name__
        fields = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if isinstance(value, SecretStr):
                fields.append(f"{field_name}=SecretStr('**********')")
            else:
                fields.append(f"{field_name}={value!r}")
        return f"{class_name}({', '.join(fields)})"
