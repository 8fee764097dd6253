"""LifecycleController — drives one sandbox from nothing to a registered CI agent.

The run is a strict sequence of stages (see :class:`LifecycleState`).
Each stage either advances the sandbox by exactly one state or raises; no
stage is skipped or repeated.  A :class:`CleanupGuard` wraps everything
after allocation so a failed or interrupted run never leaves a partially
configured sandbox behind.

Stage failures surface as:

- :class:`AllocationError` before a sandbox exists (nothing to clean up),
- :class:`StageError` (or :class:`ReadinessTimeoutError`) for host and
  command failures afterwards,
- the registration client's own errors for the token exchange,

each with ``stage`` set to the state the run was trying to reach.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from lxc_runner.errors import (
    AllocationError,
    CommandError,
    HostError,
    ProvisionerError,
    ReadinessTimeoutError,
    StageError,
)
from lxc_runner.host.models import ContainerSpec, ExecRequest, ExecResult
from lxc_runner.host.templates import TemplateCache
from lxc_runner.models import NetworkMode, ProvisioningRequest
from lxc_runner.provisioning.guard import CleanupGuard
from lxc_runner.provisioning.models import (
    LifecycleState,
    NetworkConfig,
    ProvisioningOutcome,
    SandboxResource,
)
from lxc_runner.provisioning.readiness import FileExistsProbe, NetworkProbe, wait_until_ready
from lxc_runner.provisioning.retry import run_with_retry
from lxc_runner.registration.client import registration_url
from lxc_runner.utils.telemetry import (
    ATTR_CLEANUP_SUCCEEDED,
    ATTR_NETWORK_MODE,
    ATTR_SANDBOX_ID,
    ATTR_SCOPE,
    ATTR_STAGE,
    ATTR_TARGET,
    get_tracer,
)

if TYPE_CHECKING:
    from lxc_runner.host.api import HostAPI
    from lxc_runner.registration.client import RegistrationClient
    from lxc_runner.registration.models import RegistrationToken
    from lxc_runner.settings import ProvisionerSettings

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

T = TypeVar("T")

DPKG_LOCK = "/var/lib/dpkg/lock-frontend"
_INET_RE = re.compile(r"inet (\d+(?:\.\d+){3})")


class LifecycleController:
    """Provisions a sandbox and registers a CI agent inside it.

    Parameters
    ----------
    host:
        The virtualization host.
    registration:
        An entered :class:`RegistrationClient` (or anything with the same
        ``fetch_registration_token`` coroutine).
    settings:
        Sizes, versions, package lists and retry policies.
    templates:
        Template cache; defaults to one rooted at ``settings.template_dir``.
    """

    def __init__(
        self,
        host: HostAPI,
        registration: RegistrationClient,
        settings: ProvisionerSettings,
        *,
        templates: TemplateCache | None = None,
    ) -> None:
        self._host = host
        self._registration = registration
        self._settings = settings
        self._templates = templates or TemplateCache(settings.template_dir)
        # Progress of the latest run, readable after an interrupt.
        self.stage: str | None = None
        self.cleanup_succeeded: bool | None = None

    async def provision(self, request: ProvisioningRequest) -> ProvisioningOutcome:
        """Run every stage for *request* and return the finished sandbox."""
        resource = SandboxResource(network=NetworkConfig.from_request(request))
        guard = CleanupGuard(self._host, resource)
        self.stage = None
        self.cleanup_succeeded = None

        with _tracer.start_as_current_span("provision.run") as span:
            span.set_attribute(ATTR_SCOPE, request.scope.value)
            span.set_attribute(ATTR_TARGET, request.target)
            span.set_attribute(ATTR_NETWORK_MODE, request.network_mode.value)
            try:
                async with guard:
                    await self._allocate(resource, request)
                    guard.arm()
                    assert resource.id is not None
                    span.set_attribute(ATTR_SANDBOX_ID, resource.id)

                    outcome = await self._drive(resource, request)
                    guard.disarm()
            finally:
                self.cleanup_succeeded = guard.cleanup_succeeded
                if guard.cleanup_succeeded is not None:
                    span.set_attribute(ATTR_CLEANUP_SUCCEEDED, guard.cleanup_succeeded)

        logger.info("Container created successfully with ID: %s", outcome.sandbox_id)
        logger.info("Container IP address: %s", outcome.address or "Unable to determine IP")
        return outcome

    async def _drive(self, resource: SandboxResource, request: ProvisioningRequest) -> ProvisioningOutcome:
        sandbox_id = resource.id
        assert sandbox_id is not None
        s = LifecycleState

        await self._stage(resource, s.SIZED, lambda: self._size(sandbox_id))
        await self._stage(resource, s.BOOTED, lambda: self._boot(sandbox_id, resource.network))
        await self._stage(resource, s.NETWORK_READY, lambda: self._wait_for_network(sandbox_id))
        await self._stage(resource, s.BASE_TOOLS_INSTALLED, lambda: self._install_base_tools(sandbox_id))
        await self._stage(resource, s.DEPENDENCIES_INSTALLED, lambda: self._install_dependencies(sandbox_id))
        token = await self._stage(resource, s.TOKEN_OBTAINED, lambda: self._fetch_token(request))
        url = registration_url(self._settings.web_url, request.scope, request.owner, request.repository)
        await self._stage(resource, s.AGENT_REGISTERED, lambda: self._register_agent(sandbox_id, url, token))
        address = await self._stage(resource, s.COMPLETE, lambda: self._verify(sandbox_id, resource.network))

        assert resource.hostname is not None
        return ProvisioningOutcome(
            sandbox_id=sandbox_id,
            hostname=resource.hostname,
            address=address,
            registration_url=url,
        )

    async def _stage(
        self,
        resource: SandboxResource,
        target: LifecycleState,
        action: Callable[[], Awaitable[T]],
    ) -> T:
        """Run *action* and advance *resource* to *target* if it succeeds."""
        self.stage = target.value
        with _tracer.start_as_current_span("provision.stage") as span:
            span.set_attribute(ATTR_STAGE, target.value)
            try:
                result = await action()
            except ProvisionerError as exc:
                if exc.stage is None:
                    exc.stage = target.value
                raise
            except Exception as exc:
                raise StageError(str(exc), stage=target.value) from exc
        resource.advance(target)
        return result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _allocate(self, resource: SandboxResource, request: ProvisioningRequest) -> None:
        cfg = self._settings
        self.stage = LifecycleState.ALLOCATED.value
        try:
            storages = {s.name for s in await self._host.list_storage()}
            if request.storage_backend not in storages:
                raise AllocationError(f"Storage backend '{request.storage_backend}' not found")
            bridges = await self._host.list_bridges()
            if request.network_bridge not in bridges:
                raise AllocationError(f"Network bridge '{request.network_bridge}' not found")

            template = await self._templates.ensure(cfg.template_url)
            vmid = await self._host.next_id()
            hostname = f"{cfg.hostname_prefix}-{secrets.token_hex(3)}"
            spec = ContainerSpec(
                vmid=vmid,
                template=str(template),
                hostname=hostname,
                arch=cfg.arch,
                cores=cfg.cores,
                memory=cfg.memory,
                swap=cfg.swap,
                storage=request.storage_backend,
                net0=resource.network.to_net0(),
                nameserver=request.dns_server,
            )
            logger.info("Creating LXC container with ID:%s", vmid)
            sandbox_id = await self._host.allocate(spec)
        except HostError as exc:
            error = AllocationError(str(exc))
            error.stage = LifecycleState.ALLOCATED.value
            raise error from exc
        except AllocationError as exc:
            exc.stage = LifecycleState.ALLOCATED.value
            raise

        resource.id = sandbox_id
        resource.hostname = hostname
        resource.advance(LifecycleState.ALLOCATED)

    async def _size(self, sandbox_id: int) -> None:
        logger.info("Resizing container to %s", self._settings.disk_size)
        await self._host.resize(sandbox_id, self._settings.disk_size)

    async def _boot(self, sandbox_id: int, network: NetworkConfig) -> None:
        logger.info("Starting container")
        await self._host.start(sandbox_id)

        if network.mode is NetworkMode.DHCP:
            # The veth can come up after the DHCP client has already given up
            # on first boot; one reboot once things settle avoids that.
            await asyncio.sleep(self._settings.dhcp_settle_delay)
            logger.info("Rebooting container so DHCP picks up the network device")
            await self._host.reboot(sandbox_id)

        logger.info("Waiting for container to be ready...")
        await wait_until_ready(
            sandbox_id,
            FileExistsProbe(self._host, DPKG_LOCK),
            self._settings.boot_policy,
            description="Package manager",
        )

    async def _wait_for_network(self, sandbox_id: int) -> None:
        logger.info("Waiting for network connectivity...")
        probe = NetworkProbe(
            self._host,
            reachability_host=self._settings.reachability_host,
            resolution_host=self._settings.resolution_host,
        )
        try:
            await wait_until_ready(sandbox_id, probe, self._settings.network_policy, description="Network")
        except ReadinessTimeoutError as exc:
            status = probe.last_status.value if probe.last_status else None
            raise ReadinessTimeoutError(exc.target, exc.attempts, exc.elapsed, last_status=status) from None
        logger.info("Network connectivity confirmed (DNS and internet working)")

    async def _install_base_tools(self, sandbox_id: int) -> None:
        logger.info("Running updates")
        env = {"DEBIAN_FRONTEND": "noninteractive"}

        async def install() -> None:
            await self._run(sandbox_id, ExecRequest(command=["apt-get", "update", "-y"], env=env))
            await self._run(
                sandbox_id,
                ExecRequest(command=["apt-get", "install", "-y", *self._settings.base_packages], env=env),
            )

        await run_with_retry(install, self._settings.package_policy, description="Package installation")

    async def _install_dependencies(self, sandbox_id: int) -> None:
        cfg = self._settings

        logger.info("Installing docker")
        script = "/tmp/get-docker.sh"
        await self._run(sandbox_id, ExecRequest(command=["curl", "-fsSL", "-o", script, cfg.docker_install_url]))
        await self._run(sandbox_id, ExecRequest(command=["sh", script]))

        logger.info("Downloading GitHub Actions runner v%s", cfg.runner_version)
        archive = cfg.runner_archive
        await self._run(sandbox_id, ExecRequest(command=["mkdir", "-p", cfg.runner_dir]))
        await self._run(
            sandbox_id,
            ExecRequest(command=["curl", "-fsSL", "-o", archive, cfg.runner_url], workdir=cfg.runner_dir),
        )
        digest = await self._run(sandbox_id, ExecRequest(command=["sha256sum", archive], workdir=cfg.runner_dir))
        actual = digest.stdout.split()[0] if digest.stdout.split() else ""
        if actual.lower() != cfg.runner_sha256.lower():
            raise StageError(f"Checksum verification failed for {archive}: got {actual or 'nothing'}")
        await self._run(sandbox_id, ExecRequest(command=["tar", "xzf", archive], workdir=cfg.runner_dir))

    async def _fetch_token(self, request: ProvisioningRequest) -> RegistrationToken:
        logger.info("Getting runner installation token")
        return await self._registration.fetch_registration_token(
            request.scope, request.owner, request.repository, request.credential
        )

    async def _register_agent(self, sandbox_id: int, url: str, token: RegistrationToken) -> None:
        cfg = self._settings
        user = cfg.runner_user

        logger.info("Configuring and starting runner")
        existing = await self._host.exec(sandbox_id, ExecRequest(command=["id", "-u", user]))
        if not existing.ok:
            await self._run(sandbox_id, ExecRequest(command=["useradd", "-m", "-s", "/bin/bash", user]))
            await self._run(sandbox_id, ExecRequest(command=["usermod", "-aG", "docker", user]))
        await self._run(sandbox_id, ExecRequest(command=["chown", "-R", f"{user}:{user}", cfg.runner_dir]))

        secret = token.consume()
        command = ["./config.sh", "--unattended", "--url", url, "--token", secret]
        if cfg.runner_labels:
            command.extend(["--labels", ",".join(cfg.runner_labels)])
        await self._run(
            sandbox_id,
            ExecRequest(command=command, user=user, workdir=cfg.runner_dir),
            secret=secret,
        )
        await self._run(sandbox_id, ExecRequest(command=["./svc.sh", "install", user], workdir=cfg.runner_dir))
        await self._run(sandbox_id, ExecRequest(command=["./svc.sh", "start"], workdir=cfg.runner_dir))

    async def _verify(self, sandbox_id: int, network: NetworkConfig) -> str | None:
        status = await self._host.exec(
            sandbox_id, ExecRequest(command=["./svc.sh", "status"], workdir=self._settings.runner_dir)
        )
        if not status.ok or "active (running)" not in status.stdout:
            raise StageError(f"Runner service is not running: {status.stdout or status.stderr}")

        if network.mode is NetworkMode.STATIC:
            return network.static_ip

        result = await self._host.exec(sandbox_id, ExecRequest(command=["ip", "-4", "-o", "addr", "show", "eth0"]))
        match = _INET_RE.search(result.stdout) if result.ok else None
        if match is None:
            logger.warning("Could not determine the container's IPv4 address")
            return None
        return match.group(1)

    async def _run(self, sandbox_id: int, request: ExecRequest, *, secret: str | None = None) -> ExecResult:
        """Execute *request*, raising :class:`CommandError` on a non-zero exit."""
        result = await self._host.exec(sandbox_id, request)
        if not result.ok:
            shown = ["***" if secret and part == secret else part for part in request.command]
            raise CommandError(shown, result.exit_code, result.stderr)
        return result
