# =============================================================================
# File: msk_sync/config/reliability_config.py
# Description: Retry configuration for bus connection and publish attempts
# =============================================================================

from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict


class RetryConfig(BaseModel):
    """Retry configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_attempts: int = 3
    initial_delay_ms: int = 100
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    jitter: bool = True
    jitter_type: str = "full"
    retry_condition: Optional[Callable[[Exception], bool]] = None


class ReliabilityConfigs:
    """Pre-configured retry policies for msk-sync infrastructure."""

    @staticmethod
    def bus_connect_retry(
            max_attempts: int = 30,
            initial_delay_ms: int = 500,
            max_delay_ms: int = 10000,
    ) -> RetryConfig:
        # Compatible jitter keeps delays close to the configured curve
        return RetryConfig(
            max_attempts=max_attempts,
            initial_delay_ms=initial_delay_ms,
            max_delay_ms=max_delay_ms,
            backoff_factor=2.0,
            jitter=True,
            jitter_type="compatible",
        )

    @staticmethod
    def bus_publish_retry(
            max_attempts: int = 3,
            initial_delay_ms: int = 100,
            max_delay_ms: int = 2000,
    ) -> RetryConfig:
        return RetryConfig(
            max_attempts=max_attempts,
            initial_delay_ms=initial_delay_ms,
            max_delay_ms=max_delay_ms,
            backoff_factor=2.0,
            jitter=True,
            jitter_type="full",
        )
