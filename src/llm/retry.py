# src/llm/retry.py — v2
"""Caller-side retry policy with exponential backoff.

The pipeline never retries internally; callers that want retries wrap
``resolve()`` with :func:`with_retry`. Only errors flagged ``retryable``
(model unavailable, malformed output) are retried. NotFoodError and
everything else propagate on the first failure.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from bitecache.core.errors import MalformedResponseError, ModelUnavailableError, PipelineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "unavailable": RetryConfig(max_retries=2, base_delay_s=2.0),
    "malformed": RetryConfig(max_retries=1, base_delay_s=0.5, backoff_factor=1.0),
}


def classify_error(error: Exception) -> str | None:
    """Map an exception to a retry error type, or None when not retryable."""
    if isinstance(error, ModelUnavailableError):
        return "unavailable"
    if isinstance(error, MalformedResponseError):
        return "malformed"
    return None


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    max_attempts: int | None = None,
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying retryable pipeline errors.

    Args:
        fn: Coroutine function to call.
        max_attempts: Cap on retries regardless of per-type config.
        retry_configs: Per-type overrides of DEFAULT_RETRY_CONFIGS.

    Raises:
        PipelineError: The last error once retries are exhausted.
    """
    configs = retry_configs or DEFAULT_RETRY_CONFIGS
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except PipelineError as e:
            error_type = classify_error(e)
            config = configs.get(error_type) if error_type else None
            attempts += 1

            limit = config.max_retries if config else 0
            if max_attempts is not None:
                limit = min(limit, max_attempts)
            if config is None or attempts > limit:
                raise

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "%s (attempt %d/%d), retrying in %.1fs",
                error_type, attempts, limit, delay,
            )
            await asyncio.sleep(delay)
