"""HostAPI protocol — the virtualization host operations the provisioner consumes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from lxc_runner.host.models import ContainerSpec, ExecRequest, ExecResult, StorageInfo


@runtime_checkable
class HostAPI(Protocol):
    """Creates, drives and destroys sandboxes on a virtualization host.

    Every operation may fail with :class:`~lxc_runner.errors.HostError`.
    ``exec`` reports the command's exit code instead of raising on it.
    """

    async def next_id(self) -> int: ...

    async def allocate(self, spec: ContainerSpec) -> int:
        """Create the sandbox described by *spec* and return its id."""
        ...

    async def resize(self, sandbox_id: int, size: str) -> None: ...

    async def start(self, sandbox_id: int) -> None: ...

    async def reboot(self, sandbox_id: int) -> None: ...

    async def stop(self, sandbox_id: int) -> None: ...

    async def destroy(self, sandbox_id: int) -> None: ...

    async def exec(self, sandbox_id: int, request: ExecRequest) -> ExecResult: ...

    async def list_storage(self) -> list[StorageInfo]: ...

    async def list_bridges(self) -> list[str]: ...
