"""lxc-runner CLI entrypoint."""

from __future__ import annotations

import click

from lxc_runner import __version__


@click.group()
@click.version_option(version=__version__, prog_name="lxc-runner")
def main() -> None:
    """lxc-runner — self-hosted CI runners in Proxmox LXC containers."""


# Register subcommands
from lxc_runner.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
