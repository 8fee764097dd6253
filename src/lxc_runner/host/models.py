"""Data models for the host resource API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ContainerSpec(BaseModel):
    """Everything the host needs to create a container."""

    vmid: int = Field(..., description="Id reserved with ``next_id``.")
    template: str = Field(..., description="Path of the OS template on the host.")
    hostname: str
    arch: str = "amd64"
    ostype: str = "ubuntu"
    cores: int = 4
    memory: int = Field(default=4096, description="Memory in MiB.")
    swap: int = Field(default=4096, description="Swap in MiB.")
    storage: str
    features: str = "nesting=1,keyctl=1"
    net0: str = Field(..., description="Network device definition.")
    nameserver: str


class StorageInfo(BaseModel):
    """A storage backend reported by the host."""

    name: str
    type: str


class ExecRequest(BaseModel):
    """A command to run inside a sandbox.

    Commands are argument vectors; the host never interpolates them into a
    shell string.  ``user`` and ``workdir`` select the context the command
    runs in.
    """

    command: list[str] = Field(..., min_length=1)
    user: str | None = Field(default=None, description="Run as this user instead of root.")
    workdir: str | None = Field(default=None, description="Working directory for the command.")
    env: dict[str, str] = Field(default_factory=dict)


class ExecResult(BaseModel):
    """Outcome of a command executed inside a sandbox."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
