"""Request-level models shared by every subsystem."""

from __future__ import annotations

import ipaddress
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from lxc_runner.errors import ValidationError


class Scope(str, Enum):
    """Whether the agent serves one repository or a whole organization."""

    REPOSITORY = "repository"
    ORGANIZATION = "organization"


class NetworkMode(str, Enum):
    DHCP = "dhcp"
    STATIC = "static"


class RetryPolicy(BaseModel):
    """Bounded attempts with a fixed delay between them."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(..., ge=1)
    delay: float = Field(..., ge=0.0, description="Seconds between attempts.")


class ProvisioningRequest(BaseModel):
    """Fully resolved, immutable input to a provisioning run."""

    model_config = ConfigDict(frozen=True)

    scope: Scope
    owner: str = Field(..., min_length=1)
    repository: str | None = None
    credential: str = Field(..., min_length=1, repr=False)
    storage_backend: str = Field(..., min_length=1)
    network_bridge: str = Field(..., min_length=1)
    dns_server: str = Field(..., min_length=1)
    network_mode: NetworkMode = NetworkMode.DHCP
    static_address: str | None = Field(default=None, description="CIDR, e.g. 192.168.0.132/24.")
    gateway: str | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> ProvisioningRequest:
        if "/" in self.owner:
            raise ValueError("owner must not contain '/'")
        if self.scope is Scope.REPOSITORY:
            if not self.repository:
                raise ValueError("repository scope requires a repository")
            if "/" in self.repository:
                raise ValueError("repository must not contain '/'")
        elif self.repository:
            raise ValueError("organization scope must not name a repository")

        if self.network_mode is NetworkMode.STATIC:
            if not self.static_address or not self.gateway:
                raise ValueError("static networking requires static_address and gateway")
            if "/" not in self.static_address:
                raise ValueError("static_address must be in CIDR form, e.g. 192.168.0.132/24")
            interface = ipaddress.ip_interface(self.static_address)
            gateway = ipaddress.ip_address(self.gateway)
            if not isinstance(interface, ipaddress.IPv4Interface) or not isinstance(gateway, ipaddress.IPv4Address):
                raise ValueError("static networking supports IPv4 only")
            if gateway not in interface.network:
                raise ValueError(f"gateway {gateway} is outside {interface.network}")
        elif self.static_address or self.gateway:
            raise ValueError("static_address and gateway require static networking")
        return self

    @classmethod
    def build(cls, **values: object) -> ProvisioningRequest:
        """Validate *values* into a request, raising :class:`ValidationError`."""
        try:
            return cls.model_validate(values)
        except PydanticValidationError as exc:
            # str(exc) would echo the input, credential included
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ValidationError(f"Invalid provisioning request: {problems}") from None

    @property
    def target(self) -> str:
        """``owner/repository`` or ``owner``."""
        if self.scope is Scope.REPOSITORY:
            return f"{self.owner}/{self.repository}"
        return self.owner
