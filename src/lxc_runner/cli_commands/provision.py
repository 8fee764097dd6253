"""``lxc-runner provision`` — create a sandbox and register it as a runner."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.markup import escape

from lxc_runner.cli_commands._output import (
    configure_logging,
    console,
    print_failure,
    print_interrupted,
    print_outcome,
    print_request,
)
from lxc_runner.errors import ProvisionerError, ValidationError

if TYPE_CHECKING:
    from lxc_runner.provisioning.models import ProvisioningOutcome


@click.command()
@click.argument("target")
@click.option("--org", "organization", is_flag=True, help="TARGET is an organization, not owner/repository.")
@click.option(
    "--token",
    envvar="GITHUB_TOKEN",
    prompt="Enter github token",
    hide_input=True,
    help="API token used to request a registration token [env: GITHUB_TOKEN].",
)
@click.option("--storage", default="local-lvm", show_default=True, help="Storage backend for the container.")
@click.option("--bridge", default="vmbr0", show_default=True, help="Network bridge for the container.")
@click.option("--dns", "dns_server", default="1.1.1.1", show_default=True, help="DNS server for the container.")
@click.option("--static-ip", default=None, help="Static address in CIDR form; DHCP when omitted.")
@click.option("--gateway", default=None, help="Gateway for --static-ip.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--telemetry", is_flag=True, help="Export traces to the console.")
@click.option("--dry-run", is_flag=True, help="Validate the request and settings only.")
def provision(
    target: str,
    organization: bool,
    token: str,
    storage: str,
    bridge: str,
    dns_server: str,
    static_ip: str | None,
    gateway: str | None,
    config_path: str | None,
    verbose: bool,
    telemetry: bool,
    dry_run: bool,
) -> None:
    """Provision a runner for TARGET (owner/repository, or owner with --org)."""
    from lxc_runner.models import NetworkMode, ProvisioningRequest, Scope
    from lxc_runner.settings import SettingsLoader

    configure_logging(verbose=verbose)

    try:
        owner, repository = _parse_target(target, organization=organization)
        request = ProvisioningRequest.build(
            scope=Scope.ORGANIZATION if organization else Scope.REPOSITORY,
            owner=owner,
            repository=repository,
            credential=token,
            storage_backend=storage,
            network_bridge=bridge,
            dns_server=dns_server,
            network_mode=NetworkMode.STATIC if static_ip else NetworkMode.DHCP,
            static_address=static_ip,
            gateway=gateway,
        )
        settings = SettingsLoader(Path(config_path) if config_path else None).load()
    except ProvisionerError as exc:
        console.print(f"[red]Validation error:[/red] {escape(str(exc))}")
        sys.exit(1)

    if dry_run:
        print_request(request, settings)
        return

    if telemetry:
        from lxc_runner.utils.telemetry import configure_telemetry

        configure_telemetry()

    from lxc_runner.host.proxmox import ProxmoxHost
    from lxc_runner.provisioning.controller import LifecycleController
    from lxc_runner.registration.client import RegistrationClient

    controller: LifecycleController | None = None

    async def _provision() -> ProvisioningOutcome:
        nonlocal controller
        async with RegistrationClient(settings.api_url, api_version=settings.api_version) as client:
            controller = LifecycleController(ProxmoxHost(), client, settings)
            return await controller.provision(request)

    try:
        outcome = asyncio.run(_provision())
    except ProvisionerError as exc:
        print_failure(exc)
        sys.exit(1)
    except KeyboardInterrupt:
        if controller is None:
            print_interrupted(None, None)
        else:
            print_interrupted(controller.stage, controller.cleanup_succeeded)
        sys.exit(130)

    print_outcome(outcome)


def _parse_target(target: str, *, organization: bool) -> tuple[str, str | None]:
    """Split TARGET into owner and repository."""
    parts = target.split("/")
    if organization:
        if len(parts) != 1 or not parts[0]:
            raise ValidationError(f"With --org, TARGET must be an organization name. You provided: '{target}'")
        return parts[0], None
    if len(parts) != 2 or not all(parts):
        raise ValidationError(
            "TARGET must be in format 'owner/repository' (e.g., 'octocat/Hello-World'). "
            f"You provided: '{target}'"
        )
    return parts[0], parts[1]
