"""Provisioner settings and the YAML loader that produces them."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from lxc_runner.errors import ConfigError
from lxc_runner.models import RetryPolicy

RUNNER_VERSION = "2.329.0"
RUNNER_SHA256 = "194f1e1e4bd02f80b7e9633fc546084d8d4e19f3928a324d512ea53430102e1d"
RUNNER_URL_TEMPLATE = (
    "https://github.com/actions/runner/releases/download/v{version}/actions-runner-linux-x64-{version}.tar.gz"
)


class ProvisionerSettings(BaseModel):
    """Everything the orchestrator needs besides the request itself."""

    # CI agent
    runner_version: str = RUNNER_VERSION
    runner_url: str | None = Field(default=None, description="Derived from runner_version when unset.")
    runner_sha256: str = RUNNER_SHA256
    runner_dir: str = "/opt/actions-runner"
    runner_user: str = "runner"
    runner_labels: list[str] = Field(default_factory=list)

    # Container
    template_url: str = "http://download.proxmox.com/images/system/ubuntu-24.04-standard_24.04-2_amd64.tar.zst"
    template_dir: Path = Path(".")
    disk_size: str = "20G"
    arch: str = "amd64"
    cores: int = Field(default=4, ge=1)
    memory: int = Field(default=4096, ge=256)
    swap: int = Field(default=4096, ge=0)
    hostname_prefix: str = "github-runner-proxmox"

    # Packages
    base_packages: list[str] = Field(default_factory=lambda: ["git", "curl", "zip", "jq"])
    docker_install_url: str = "https://get.docker.com"

    # Control plane
    api_url: str = "https://api.github.com"
    web_url: str = "https://github.com"
    api_version: str = "2022-11-28"

    # Readiness
    reachability_host: str = "8.8.8.8"
    resolution_host: str = "archive.ubuntu.com"
    dhcp_settle_delay: float = Field(default=5.0, ge=0.0)
    boot_policy: RetryPolicy = RetryPolicy(max_attempts=30, delay=2.0)
    network_policy: RetryPolicy = RetryPolicy(max_attempts=30, delay=2.0)
    package_policy: RetryPolicy = RetryPolicy(max_attempts=3, delay=5.0)

    @model_validator(mode="after")
    def _derive_runner_url(self) -> ProvisionerSettings:
        if self.runner_url is None:
            self.runner_url = RUNNER_URL_TEMPLATE.format(version=self.runner_version)
        return self

    @property
    def runner_archive(self) -> str:
        assert self.runner_url is not None
        return self.runner_url.rsplit("/", 1)[-1]


class SettingsLoader:
    """Load and validate a settings YAML file into :class:`ProvisionerSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    def load(self) -> ProvisionerSettings:
        """Read YAML, interpolate env vars, and validate.

        Without a path the defaults are returned.  ``${VAR}`` references are
        expanded with :func:`os.path.expandvars` before parsing.

        Raises:
            ConfigError: On read, YAML parse, or schema validation failures.
        """
        if self._path is None:
            return ProvisionerSettings()

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read {self._path}: {exc}") from exc

        try:
            data: Any = yaml.safe_load(os.path.expandvars(raw))
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML parse error: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Settings YAML must be a mapping")

        try:
            return ProvisionerSettings.model_validate(data)
        except PydanticValidationError as exc:
            raise ConfigError(str(exc)) from exc
