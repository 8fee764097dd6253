"""Retry executor — bounded retry-with-delay around a fallible operation.

Every exception is treated as retryable until the policy's attempts run
out; the executor does not distinguish transient from permanent failures.
Only wrap operations that are safe to repeat.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from lxc_runner.utils.telemetry import ATTR_RETRY_ATTEMPT, get_tracer

if TYPE_CHECKING:
    from lxc_runner.models import RetryPolicy

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

T = TypeVar("T")


async def run_with_retry(
    op: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "operation",
) -> T:
    """Await ``op()`` until it succeeds or ``policy.max_attempts`` is reached.

    Sleeps ``policy.delay`` between attempts (not after the last one).

    Raises:
        Exception: The error from the *last* attempt, unchanged.
    """
    span = _tracer.start_span("retry.run")
    try:
        for attempt in range(1, policy.max_attempts + 1):
            span.set_attribute(ATTR_RETRY_ATTEMPT, attempt)
            try:
                return await op()
            except Exception as exc:
                span.add_event("retry.attempt_failed", {"attempt": attempt, "error": str(exc)})
                if attempt == policy.max_attempts:
                    logger.error(
                        "%s failed after %d attempts", description, policy.max_attempts
                    )
                    raise
                logger.info(
                    "%s failed, retrying (%d/%d)...", description, attempt, policy.max_attempts
                )
                await asyncio.sleep(policy.delay)
        raise AssertionError("unreachable")
    finally:
        span.end()
