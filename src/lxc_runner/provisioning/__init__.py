"""Provisioning subsystem — lifecycle controller, readiness, retry and cleanup."""

from lxc_runner.provisioning.controller import LifecycleController
from lxc_runner.provisioning.guard import CleanupGuard
from lxc_runner.provisioning.models import (
    LifecycleState,
    NetworkConfig,
    ProvisioningOutcome,
    SandboxResource,
)
from lxc_runner.provisioning.readiness import (
    FileExistsProbe,
    NetworkProbe,
    NetworkStatus,
    wait_until_ready,
)
from lxc_runner.provisioning.retry import run_with_retry

__all__ = [
    "CleanupGuard",
    "FileExistsProbe",
    "LifecycleController",
    "LifecycleState",
    "NetworkConfig",
    "NetworkProbe",
    "NetworkStatus",
    "ProvisioningOutcome",
    "SandboxResource",
    "run_with_retry",
    "wait_until_ready",
]
