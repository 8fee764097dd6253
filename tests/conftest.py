"""Shared fixtures: an in-memory host, a scripted registration client, fast settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from lxc_runner.errors import HostError
from lxc_runner.host.models import ContainerSpec, ExecRequest, ExecResult, StorageInfo
from lxc_runner.models import NetworkMode, ProvisioningRequest, RetryPolicy, Scope
from lxc_runner.registration.models import RegistrationToken
from lxc_runner.settings import ProvisionerSettings

OK = ExecResult(exit_code=0)
FAIL = ExecResult(exit_code=1, stderr="boom")


class FakeHost:
    """In-memory HostAPI.

    ``exec`` answers from scripted results (matched by command prefix and
    consumed in order) and falls back to sensible defaults.  ``fail`` makes
    a lifecycle operation raise :class:`HostError`.
    """

    def __init__(self, settings: ProvisionerSettings) -> None:
        self.settings = settings
        self.vmid = 101
        self.storages = [StorageInfo(name="local-lvm", type="lvmthin"), StorageInfo(name="local", type="dir")]
        self.bridges = ["vmbr0"]
        self.calls: list[tuple[str, Any]] = []
        self.execs: list[ExecRequest] = []
        self.specs: list[ContainerSpec] = []
        self._failures: dict[str, HostError] = {}
        self._scripts: list[tuple[list[str], list[ExecResult]]] = []

    # -- scripting -------------------------------------------------------

    def fail(self, operation: str, detail: str = "failed") -> None:
        self._failures[operation] = HostError(detail)

    def script(self, prefix: list[str], *results: ExecResult) -> None:
        self._scripts.append((prefix, list(results)))

    def count(self, prefix: list[str]) -> int:
        return sum(1 for r in self.execs if r.command[: len(prefix)] == prefix)

    def called(self, operation: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == operation]

    # -- HostAPI ---------------------------------------------------------

    async def _op(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        if name in self._failures:
            raise self._failures[name]

    async def next_id(self) -> int:
        await self._op("next_id")
        return self.vmid

    async def allocate(self, spec: ContainerSpec) -> int:
        self.specs.append(spec)
        await self._op("allocate", spec.vmid)
        return spec.vmid

    async def resize(self, sandbox_id: int, size: str) -> None:
        await self._op("resize", sandbox_id)

    async def start(self, sandbox_id: int) -> None:
        await self._op("start", sandbox_id)

    async def reboot(self, sandbox_id: int) -> None:
        await self._op("reboot", sandbox_id)

    async def stop(self, sandbox_id: int) -> None:
        await self._op("stop", sandbox_id)

    async def destroy(self, sandbox_id: int) -> None:
        await self._op("destroy", sandbox_id)

    async def exec(self, sandbox_id: int, request: ExecRequest) -> ExecResult:
        self.execs.append(request)
        await self._op("exec", sandbox_id)
        for prefix, results in self._scripts:
            if request.command[: len(prefix)] == prefix and results:
                return results.pop(0)
        return self._default(request)

    async def list_storage(self) -> list[StorageInfo]:
        await self._op("list_storage")
        return self.storages

    async def list_bridges(self) -> list[str]:
        await self._op("list_bridges")
        return self.bridges

    def _default(self, request: ExecRequest) -> ExecResult:
        cmd = request.command
        if cmd[0] == "sha256sum":
            return ExecResult(exit_code=0, stdout=f"{self.settings.runner_sha256}  {cmd[1]}")
        if cmd[:2] == ["./svc.sh", "status"]:
            return ExecResult(exit_code=0, stdout="Active: active (running) since Mon")
        if cmd[:2] == ["ip", "-4"]:
            return ExecResult(exit_code=0, stdout="2: eth0    inet 192.168.0.50/24 brd 192.168.0.255 scope global eth0")
        if cmd[:2] == ["id", "-u"]:
            return ExecResult(exit_code=1, stderr="no such user")
        return OK


class FakeRegistration:
    """Stands in for an entered RegistrationClient."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[Any, ...]] = []
        self.tokens: list[RegistrationToken] = []

    async def fetch_registration_token(
        self, scope: Scope, owner: str, repository: str | None, credential: str
    ) -> RegistrationToken:
        self.calls.append((scope, owner, repository, credential))
        if self.error is not None:
            raise self.error
        token = RegistrationToken(token="REGTOKEN123")
        self.tokens.append(token)
        return token


@pytest.fixture
def settings(tmp_path: Path) -> ProvisionerSettings:
    fast = RetryPolicy(max_attempts=30, delay=0.0)
    return ProvisionerSettings(
        template_dir=tmp_path,
        dhcp_settle_delay=0.0,
        boot_policy=fast,
        network_policy=fast,
        package_policy=RetryPolicy(max_attempts=3, delay=0.0),
    )


@pytest.fixture
def host(settings: ProvisionerSettings) -> FakeHost:
    return FakeHost(settings)


@pytest.fixture
def registration() -> FakeRegistration:
    return FakeRegistration()


@pytest.fixture
def templates() -> MagicMock:
    cache = MagicMock()
    cache.ensure = AsyncMock(return_value=Path("/var/lib/vz/template/cache/ubuntu.tar.zst"))
    return cache


@pytest.fixture
def request_values() -> dict[str, Any]:
    return {
        "scope": Scope.REPOSITORY,
        "owner": "acme",
        "repository": "widgets",
        "credential": "tok",
        "storage_backend": "local-lvm",
        "network_bridge": "vmbr0",
        "dns_server": "1.1.1.1",
        "network_mode": NetworkMode.DHCP,
    }


@pytest.fixture
def repo_request(request_values: dict[str, Any]) -> ProvisioningRequest:
    return ProvisioningRequest.build(**request_values)
