"""ProxmoxHost — drives LXC containers through the Proxmox VE command-line tools.

Uses ``pct``, ``pvesh``, ``pvesm`` and ``ip`` via subprocess argument
vectors.  Commands destined for the inside of a container are rendered from
an :class:`~lxc_runner.host.models.ExecRequest` and are never passed
through a shell on the host.
"""

from __future__ import annotations

import asyncio
import logging

from lxc_runner.errors import HostError
from lxc_runner.host.models import ContainerSpec, ExecRequest, ExecResult, StorageInfo

logger = logging.getLogger(__name__)


class ProxmoxHost:
    """Proxmox VE host.

    Satisfies the :class:`~lxc_runner.host.api.HostAPI` protocol.
    """

    def __init__(self, *, pct: str = "pct", pvesh: str = "pvesh", pvesm: str = "pvesm") -> None:
        self._pct = pct
        self._pvesh = pvesh
        self._pvesm = pvesm

    async def next_id(self) -> int:
        out = await self._run([self._pvesh, "get", "/cluster/nextid"])
        value = out.stdout.strip().strip('"')
        try:
            return int(value)
        except ValueError as exc:
            raise HostError(f"Unexpected next id: {value!r}") from exc

    async def allocate(self, spec: ContainerSpec) -> int:
        await self._run(self._build_create_command(spec))
        return spec.vmid

    async def resize(self, sandbox_id: int, size: str) -> None:
        await self._run([self._pct, "resize", str(sandbox_id), "rootfs", size])

    async def start(self, sandbox_id: int) -> None:
        await self._run([self._pct, "start", str(sandbox_id)])

    async def reboot(self, sandbox_id: int) -> None:
        await self._run([self._pct, "reboot", str(sandbox_id)])

    async def stop(self, sandbox_id: int) -> None:
        await self._run([self._pct, "stop", str(sandbox_id)])

    async def destroy(self, sandbox_id: int) -> None:
        await self._run([self._pct, "destroy", str(sandbox_id)])

    async def exec(self, sandbox_id: int, request: ExecRequest) -> ExecResult:
        cmd = [self._pct, "exec", str(sandbox_id), "--", *self.render_exec(request)]
        out = await self._run(cmd, check=False)
        return ExecResult(exit_code=out.returncode, stdout=out.stdout, stderr=out.stderr)

    async def list_storage(self) -> list[StorageInfo]:
        out = await self._run([self._pvesm, "status"])
        storages: list[StorageInfo] = []
        for line in out.stdout.splitlines()[1:]:
            fields = line.split()
            if len(fields) >= 2:
                storages.append(StorageInfo(name=fields[0], type=fields[1]))
        return storages

    async def list_bridges(self) -> list[str]:
        out = await self._run(["ip", "-o", "link", "show", "type", "bridge"])
        bridges: list[str] = []
        for line in out.stdout.splitlines():
            # "3: vmbr0: <BROADCAST,...> mtu 1500 ..."
            parts = line.split(":", 2)
            if len(parts) >= 2:
                bridges.append(parts[1].strip().split("@", 1)[0])
        return bridges

    def _build_create_command(self, spec: ContainerSpec) -> list[str]:
        """Build the ``pct create`` command for *spec*."""
        return [
            self._pct, "create", str(spec.vmid), spec.template,
            "-arch", spec.arch,
            "-ostype", spec.ostype,
            "-hostname", spec.hostname,
            "-cores", str(spec.cores),
            "-memory", str(spec.memory),
            "-swap", str(spec.swap),
            "-storage", spec.storage,
            "-features", spec.features,
            "-net0", spec.net0,
            "-nameserver", spec.nameserver,
        ]

    @staticmethod
    def render_exec(request: ExecRequest) -> list[str]:
        """Render *request* as the argument vector run inside the container.

        ``env`` applies the working directory and extra variables, and
        ``runuser`` switches to the requested user without a login shell so
        that both survive the switch.
        """
        argv: list[str] = []
        if request.workdir or request.env:
            argv.append("env")
            if request.workdir:
                argv.append(f"--chdir={request.workdir}")
            argv.extend(f"{key}={value}" for key, value in request.env.items())
        if request.user:
            argv.extend(["runuser", "-u", request.user, "--"])
        argv.extend(request.command)
        return argv

    @staticmethod
    async def _run(cmd: list[str], *, check: bool = True) -> _CommandOutput:
        """Run a host command and return its output."""
        logger.debug("host: %s", cmd[:3])
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout_bytes, stderr_bytes = await proc.communicate()
        except OSError as exc:
            raise HostError(f"Failed to run {cmd[0]}: {exc}") from exc

        stdout = stdout_bytes.decode(errors="replace").strip() if stdout_bytes else ""
        stderr = stderr_bytes.decode(errors="replace").strip() if stderr_bytes else ""
        returncode = proc.returncode or 0

        if check and returncode != 0:
            raise HostError(f"{cmd[0]} {cmd[1]} failed (rc={returncode}): {stderr or stdout}")

        return _CommandOutput(returncode=returncode, stdout=stdout, stderr=stderr)


class _CommandOutput:
    """Simple container for host command output."""

    __slots__ = ("returncode", "stdout", "stderr")

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
