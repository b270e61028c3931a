"""
Exponential backoff for feed requests.

A request is retried when it raises ``TransportError`` or
``UpstreamRejection``. The delay before retry *k* (1-based) is
``min(initial_delay * multiplier ** (k - 1), max_delay)``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from ..config import RetryConfig
from ..errors import TransportError, UpstreamRejection
from ..logging_utils import log_event

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]

logger = logging.getLogger("hn_watcher.retry")


def backoff_delay_ms(cfg: RetryConfig, retry_number: int) -> float:
    """Return the delay in milliseconds before the given retry (1-based)."""
    if retry_number < 1:
        raise ValueError("retry_number starts at 1")
    delay = cfg.initial_delay_ms * cfg.backoff_multiplier ** (retry_number - 1)
    return min(delay, cfg.max_delay_ms)


def backoff_schedule_ms(cfg: RetryConfig) -> list[float]:
    """Return every delay the policy will wait before giving up."""
    return [backoff_delay_ms(cfg, k) for k in range(1, cfg.max_retries + 1)]


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    cfg: RetryConfig,
    description: str,
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Await ``func()`` until it succeeds or the retry budget is spent.

    Args:
        func: Zero-argument coroutine factory performing one attempt
        cfg: Backoff policy
        description: Short label used in log messages (usually the URL)
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Whatever ``func`` returns on its first successful attempt

    Raises:
        TransportError: The last attempt failed at the network level
        UpstreamRejection: The last attempt got a non-success status
    """
    for attempt in range(cfg.max_retries + 1):
        try:
            return await func()
        except (TransportError, UpstreamRejection) as exc:
            if attempt >= cfg.max_retries:
                raise
            delay_ms = backoff_delay_ms(cfg, attempt + 1)
            log_event(
                logger,
                f"Request failed for {description}, retrying in {delay_ms:.0f}ms",
                level=logging.WARNING,
                event="request_retry",
                target=description,
                attempt=attempt + 1,
                delay_ms=delay_ms,
                error=str(exc),
            )
            await sleep(delay_ms / 1000)
    raise AssertionError("unreachable")
