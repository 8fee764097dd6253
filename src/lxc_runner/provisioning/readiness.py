"""Readiness probing — bounded polling for a condition on a sandbox.

``wait_until_ready`` evaluates a condition at a fixed interval until it
holds or the policy's attempts are exhausted.  Conditions are plain async
callables taking the sandbox id; they must be idempotent and free of side
effects on the sandbox.

Usage::

    probe = NetworkProbe(host)
    await wait_until_ready(sandbox_id, probe, RetryPolicy(max_attempts=30, delay=2.0))
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

from lxc_runner.errors import ReadinessTimeoutError
from lxc_runner.host.models import ExecRequest

if TYPE_CHECKING:
    from lxc_runner.host.api import HostAPI
    from lxc_runner.models import RetryPolicy

logger = logging.getLogger(__name__)

Condition = Callable[[int], Awaitable[bool]]


async def wait_until_ready(
    target: int,
    condition: Condition,
    policy: RetryPolicy,
    *,
    description: str = "sandbox",
) -> int:
    """Poll ``condition(target)`` until it holds.

    Returns the number of polls it took.  Sleeps ``policy.delay`` after
    every unsuccessful poll, so a condition that never holds fails after
    ``max_attempts * delay`` seconds.

    Raises:
        ReadinessTimeoutError: When all attempts are exhausted.
    """
    started = time.monotonic()
    for attempt in range(1, policy.max_attempts + 1):
        if await condition(target):
            logger.debug("%s ready after %d poll(s)", description, attempt)
            return attempt
        logger.debug("%s not ready (poll %d/%d)", description, attempt, policy.max_attempts)
        await asyncio.sleep(policy.delay)

    raise ReadinessTimeoutError(description, policy.max_attempts, time.monotonic() - started)


class NetworkStatus(str, Enum):
    UNREACHABLE = "unreachable"
    UNRESOLVABLE = "unresolvable"
    READY = "ready"


class NetworkProbe:
    """Reachability and name resolution from inside the sandbox.

    Raw reachability is probed first; resolution is only probed once the
    host is reachable.  Reachable but unresolvable is a distinct status
    that keeps the wait going.
    """

    def __init__(
        self,
        host: HostAPI,
        *,
        reachability_host: str = "8.8.8.8",
        resolution_host: str = "archive.ubuntu.com",
    ) -> None:
        self._host = host
        self._reachability_host = reachability_host
        self._resolution_host = resolution_host
        self.last_status: NetworkStatus | None = None

    async def __call__(self, sandbox_id: int) -> bool:
        self.last_status = await self.check(sandbox_id)
        if self.last_status is NetworkStatus.UNRESOLVABLE:
            logger.info("Internet reachable but DNS not working yet, continuing to wait...")
        return self.last_status is NetworkStatus.READY

    async def check(self, sandbox_id: int) -> NetworkStatus:
        if not await self._ping(sandbox_id, self._reachability_host):
            return NetworkStatus.UNREACHABLE
        if not await self._ping(sandbox_id, self._resolution_host):
            return NetworkStatus.UNRESOLVABLE
        return NetworkStatus.READY

    async def _ping(self, sandbox_id: int, destination: str) -> bool:
        result = await self._host.exec(
            sandbox_id,
            ExecRequest(command=["ping", "-c", "1", "-W", "2", destination]),
        )
        return result.ok


class FileExistsProbe:
    """Holds once *path* exists inside the sandbox."""

    def __init__(self, host: HostAPI, path: str) -> None:
        self._host = host
        self._path = path

    async def __call__(self, sandbox_id: int) -> bool:
        result = await self._host.exec(sandbox_id, ExecRequest(command=["test", "-f", self._path]))
        return result.ok
