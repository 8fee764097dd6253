"""lxc-runner — provisions LXC sandboxes on Proxmox VE as self-hosted CI runners."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from lxc_runner.provisioning.controller import LifecycleController as LifecycleController

_LAZY_EXPORTS = {
    "LifecycleController": "lxc_runner.provisioning.controller",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'lxc_runner' has no attribute {name!r}")
