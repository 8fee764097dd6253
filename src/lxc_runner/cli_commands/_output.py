"""Shared CLI output formatters."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from lxc_runner.errors import AuthError, ProvisionerError
from lxc_runner.models import ProvisioningRequest  # noqa: TC001
from lxc_runner.provisioning.models import ProvisioningOutcome  # noqa: TC001
from lxc_runner.settings import ProvisionerSettings  # noqa: TC001

console = Console()


def configure_logging(*, verbose: bool = False) -> None:
    """Route log records through rich on the shared console."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def print_request(request: ProvisioningRequest, settings: ProvisionerSettings) -> None:
    """Summarize a validated request without its credential."""
    console.print("[green]Request validated successfully.[/green]")
    console.print(f"  Target: {request.target} ({request.scope.value})")
    console.print(f"  Storage: {request.storage_backend}")
    console.print(f"  Bridge: {request.network_bridge}")
    if request.static_address:
        console.print(f"  Network: static {request.static_address} via {request.gateway}")
    else:
        console.print("  Network: dhcp")
    console.print(f"  DNS: {request.dns_server}")
    console.print(f"  Runner: v{settings.runner_version}, {settings.cores} cores, {settings.memory} MiB, {settings.disk_size}")


def print_outcome(outcome: ProvisioningOutcome) -> None:
    """Pretty-print a finished sandbox as a table."""
    table = Table(title="Runner Provisioned")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Container ID", str(outcome.sandbox_id))
    table.add_row("Hostname", outcome.hostname)
    table.add_row("IP address", outcome.address or "Unable to determine IP")
    table.add_row("Registered at", outcome.registration_url)

    console.print(table)
    console.print("Check the Actions settings of the target to see the new runner.")


def print_failure(exc: ProvisionerError) -> None:
    """Report the failed stage, the error, and what happened to the sandbox."""
    stage = exc.stage or "validation"
    console.print(f"[red]Provisioning failed at stage {stage}:[/red] {escape(str(exc))}")

    if isinstance(exc, AuthError) and exc.response_body:
        console.print(f"  Response: {_truncate(exc.response_body, 500)}", markup=False)

    _print_cleanup(exc.cleanup_succeeded)


def print_interrupted(stage: str | None, cleanup_succeeded: bool | None) -> None:
    """Report where an interrupted run stopped and what happened to the sandbox."""
    console.print(f"[red]Interrupted during stage {stage or 'startup'}.[/red]")
    _print_cleanup(cleanup_succeeded)


def _print_cleanup(cleanup_succeeded: bool | None) -> None:
    if cleanup_succeeded is True:
        console.print("  Cleanup: sandbox destroyed")
    elif cleanup_succeeded is False:
        console.print("  [red]Cleanup: FAILED, the sandbox must be removed manually[/red]")
    else:
        console.print("  Cleanup: not needed, no sandbox was created")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
