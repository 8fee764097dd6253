"""Data models for a provisioning run."""

from __future__ import annotations

import ipaddress
from enum import Enum

from pydantic import BaseModel, ConfigDict

from lxc_runner.models import NetworkMode, ProvisioningRequest


class LifecycleState(str, Enum):
    """Sandbox lifecycle, in strict forward order."""

    UNINITIALIZED = "uninitialized"
    ALLOCATED = "allocated"
    SIZED = "sized"
    BOOTED = "booted"
    NETWORK_READY = "network_ready"
    BASE_TOOLS_INSTALLED = "base_tools_installed"
    DEPENDENCIES_INSTALLED = "dependencies_installed"
    TOKEN_OBTAINED = "token_obtained"
    AGENT_REGISTERED = "agent_registered"
    COMPLETE = "complete"

    def next(self) -> LifecycleState:
        """Return the state that directly follows this one."""
        order = list(LifecycleState)
        index = order.index(self)
        if index == len(order) - 1:
            raise RuntimeError("COMPLETE is terminal")
        return order[index + 1]


class NetworkConfig(BaseModel):
    """The sandbox's first network device."""

    model_config = ConfigDict(frozen=True)

    bridge: str
    mode: NetworkMode
    address: str | None = None
    gateway: str | None = None

    @classmethod
    def from_request(cls, request: ProvisioningRequest) -> NetworkConfig:
        return cls(
            bridge=request.network_bridge,
            mode=request.network_mode,
            address=request.static_address,
            gateway=request.gateway,
        )

    def to_net0(self) -> str:
        """Render as a ``net0`` device definition."""
        if self.mode is NetworkMode.DHCP:
            return f"name=eth0,bridge={self.bridge},ip=dhcp,type=veth"
        return f"name=eth0,bridge={self.bridge},gw={self.gateway},ip={self.address},type=veth"

    @property
    def static_ip(self) -> str | None:
        """The static address without its prefix length."""
        if self.address is None:
            return None
        return str(ipaddress.ip_interface(self.address).ip)


class SandboxResource(BaseModel):
    """The sandbox being built. Mutated only by the lifecycle controller."""

    id: int | None = None
    hostname: str | None = None
    state: LifecycleState = LifecycleState.UNINITIALIZED
    network: NetworkConfig

    def advance(self, to: LifecycleState) -> None:
        """Move to *to*, which must be the state directly after the current one."""
        expected = self.state.next()
        if to is not expected:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {to.value}")
        self.state = to


class ProvisioningOutcome(BaseModel):
    """What a successful run leaves behind for the operator."""

    sandbox_id: int
    hostname: str
    address: str | None = None
    state: LifecycleState = LifecycleState.COMPLETE
    registration_url: str
