"""Host subsystem — the virtualization host the sandboxes live on."""

from lxc_runner.host.api import HostAPI
from lxc_runner.host.models import ContainerSpec, ExecRequest, ExecResult, StorageInfo
from lxc_runner.host.proxmox import ProxmoxHost
from lxc_runner.host.templates import TemplateCache

__all__ = [
    "ContainerSpec",
    "ExecRequest",
    "ExecResult",
    "HostAPI",
    "ProxmoxHost",
    "StorageInfo",
    "TemplateCache",
]
