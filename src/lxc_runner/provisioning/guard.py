"""CleanupGuard — destroys a partially built sandbox when a run does not complete."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING

from lxc_runner.errors import ProvisionerError
from lxc_runner.provisioning.models import LifecycleState

if TYPE_CHECKING:
    from lxc_runner.host.api import HostAPI
    from lxc_runner.provisioning.models import SandboxResource

logger = logging.getLogger(__name__)


class CleanupGuard:
    """Async context manager around one provisioning run.

    The controller calls :meth:`arm` once the sandbox is allocated and
    :meth:`disarm` once it is complete.  Leaving the block while armed, for
    any reason including cancellation, stops and destroys the sandbox.
    Failures of the stop or destroy calls are logged and never replace the
    error that ended the run.

    The guard reads the resource's ``id`` and ``state`` but never changes
    them.
    """

    def __init__(self, host: HostAPI, resource: SandboxResource) -> None:
        self._host = host
        self._resource = resource
        self.armed = False
        self.cleanup_succeeded: bool | None = None

    def arm(self) -> None:
        if self._resource.id is None:
            raise RuntimeError("Cannot arm cleanup before the sandbox has an id")
        self.armed = True

    def disarm(self) -> None:
        self.armed = False

    async def __aenter__(self) -> CleanupGuard:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.armed:
            return

        sandbox_id = self._resource.id
        assert sandbox_id is not None
        if self._resource.state is LifecycleState.COMPLETE:
            logger.warning("Sandbox %s reached COMPLETE but cleanup was still armed", sandbox_id)

        reason = type(exc).__name__ if exc is not None else "run ended early"
        logger.error(
            "Run failed at %s (%s). Cleaning up sandbox %s...",
            self._resource.state.value,
            reason,
            sandbox_id,
        )
        self.cleanup_succeeded = await self._cleanup(sandbox_id)
        self.armed = False

        if isinstance(exc, ProvisionerError):
            exc.cleanup_succeeded = self.cleanup_succeeded

    async def _cleanup(self, sandbox_id: int) -> bool:
        try:
            await self._host.stop(sandbox_id)
        except Exception as exc:
            logger.warning("Could not stop sandbox %s: %s", sandbox_id, exc)

        try:
            await self._host.destroy(sandbox_id)
        except Exception as exc:
            logger.error("Could not destroy sandbox %s: %s", sandbox_id, exc)
            return False

        logger.warning("Sandbox %s has been destroyed", sandbox_id)
        return True
