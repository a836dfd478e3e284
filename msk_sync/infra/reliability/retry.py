# =============================================================================
# File: msk_sync/infra/reliability/retry.py
# Description: Retry mechanism with exponential backoff and jitter
# =============================================================================

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

from msk_sync.config.reliability_config import RetryConfig

logger = logging.getLogger("msk_sync.retry")

T = TypeVar('T')


# Jitter strategies
class JitterStrategy(ABC):
    """Base class for jitter strategies."""

    @abstractmethod
    def apply(self, base_delay: float) -> float:
        """Apply jitter to base delay."""


class FullJitter(JitterStrategy):
    """Full jitter: delay = random(0, base_delay)."""

    def apply(self, base_delay: float) -> float:
        return random.uniform(0, base_delay)


class EqualJitter(JitterStrategy):
    """Equal jitter: delay = base_delay/2 + random(0, base_delay/2)."""

    def apply(self, base_delay: float) -> float:
        half = base_delay / 2
        return half + random.uniform(0, half)


class CompatibleJitter(JitterStrategy):
    """Compatible jitter: ±25% around the base delay."""

    def apply(self, base_delay: float) -> float:
        return base_delay * (1.0 + random.uniform(-0.25, 0.25))


def get_jitter_strategy(jitter_type: str) -> JitterStrategy:
    """Get jitter strategy by name."""
    strategies = {
        'full': FullJitter(),
        'equal': EqualJitter(),
        'compatible': CompatibleJitter(),
    }
    return strategies.get(jitter_type, CompatibleJitter())


def compute_delay_ms(retry_config: RetryConfig, attempt: int) -> float:
    """Backoff delay before the retry following `attempt` (1-based)."""
    base_delay_ms = min(
        retry_config.initial_delay_ms * (retry_config.backoff_factor ** (attempt - 1)),
        retry_config.max_delay_ms
    )
    if retry_config.jitter:
        return get_jitter_strategy(retry_config.jitter_type).apply(base_delay_ms)
    return base_delay_ms


async def retry_async(
        func: Callable[..., Awaitable[T]],
        *args: Any,
        retry_config: Optional[RetryConfig] = None,
        context: str = "operation",
        retry_on: Optional[Union[Type[Exception], Tuple[Type[Exception], ...]]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs: Any
) -> T:
    """
    Execute async function with retry logic.

    Gives up after `retry_config.max_attempts` attempts and re-raises the last
    error. Errors that fail `retry_config.retry_condition` or are not instances
    of `retry_on` are raised immediately.
    """
    if retry_config is None:
        retry_config = RetryConfig()

    for attempt in range(1, retry_config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if retry_on is not None and not isinstance(e, retry_on):
                raise

            if retry_config.retry_condition and not retry_config.retry_condition(e):
                logger.warning(
                    f"Retry condition not met for {context} after attempt {attempt}. Error: {e}"
                )
                raise

            if attempt >= retry_config.max_attempts:
                logger.warning(
                    f"Retry exhausted for {context} after {attempt} attempts. Last error: {e}"
                )
                raise

            delay_seconds = compute_delay_ms(retry_config, attempt) / 1000

            logger.info(
                f"Retry attempt {attempt}/{retry_config.max_attempts} for {context} "
                f"after error: {e}. Waiting {delay_seconds:.2f}s before retry."
            )

            await sleep(delay_seconds)

    raise RuntimeError(f"Retry loop for {context} ran with max_attempts={retry_config.max_attempts}")
