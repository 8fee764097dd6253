"""Tests for ProvisionerSettings and SettingsLoader."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from lxc_runner.errors import ConfigError
from lxc_runner.settings import ProvisionerSettings, SettingsLoader

if TYPE_CHECKING:
    from pathlib import Path


class TestDefaults:
    def test_policies(self) -> None:
        settings = ProvisionerSettings()
        assert (settings.network_policy.max_attempts, settings.network_policy.delay) == (30, 2.0)
        assert (settings.package_policy.max_attempts, settings.package_policy.delay) == (3, 5.0)
        assert (settings.boot_policy.max_attempts, settings.boot_policy.delay) == (30, 2.0)

    def test_runner_archive(self) -> None:
        settings = ProvisionerSettings()
        assert settings.runner_archive == f"actions-runner-linux-x64-{settings.runner_version}.tar.gz"

    def test_runner_url_follows_version(self) -> None:
        settings = ProvisionerSettings.model_validate({"runner_version": "2.330.0"})
        assert settings.runner_url == (
            "https://github.com/actions/runner/releases/download/v2.330.0/actions-runner-linux-x64-2.330.0.tar.gz"
        )
        assert settings.runner_archive == "actions-runner-linux-x64-2.330.0.tar.gz"

    def test_explicit_runner_url_wins(self) -> None:
        settings = ProvisionerSettings(runner_version="2.330.0", runner_url="https://mirror.local/runner.tar.gz")
        assert settings.runner_url == "https://mirror.local/runner.tar.gz"
        assert settings.runner_archive == "runner.tar.gz"

    def test_base_packages(self) -> None:
        assert ProvisionerSettings().base_packages == ["git", "curl", "zip", "jq"]


class TestSettingsLoader:
    def test_no_path_gives_defaults(self) -> None:
        assert SettingsLoader().load() == ProvisionerSettings()

    def test_overrides(self, tmp_path: Path) -> None:
        f = tmp_path / "settings.yaml"
        f.write_text(
            "cores: 8\n"
            "disk_size: 40G\n"
            "runner_labels: [proxmox, docker]\n"
            "package_policy:\n"
            "  max_attempts: 5\n"
            "  delay: 1.5\n"
        )
        settings = SettingsLoader(f).load()

        assert settings.cores == 8
        assert settings.disk_size == "40G"
        assert settings.runner_labels == ["proxmox", "docker"]
        assert settings.package_policy.max_attempts == 5
        assert settings.network_policy.max_attempts == 30

    def test_version_override_changes_download(self, tmp_path: Path) -> None:
        f = tmp_path / "settings.yaml"
        f.write_text('runner_version: "2.330.0"\n')
        assert "v2.330.0/actions-runner-linux-x64-2.330.0.tar.gz" in SettingsLoader(f).load().runner_url

    def test_env_interpolation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RUNNER_CACHE", "/srv/templates")
        f = tmp_path / "settings.yaml"
        f.write_text("template_dir: ${RUNNER_CACHE}\n")

        assert str(SettingsLoader(f).load().template_dir) == "/srv/templates"

    def test_empty_file(self, tmp_path: Path) -> None:
        f = tmp_path / "settings.yaml"
        f.write_text("")
        assert SettingsLoader(f).load() == ProvisionerSettings()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read"):
            SettingsLoader(tmp_path / "missing.yaml").load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "settings.yaml"
        f.write_text("cores: [unclosed\n")
        with pytest.raises(ConfigError, match="YAML parse error"):
            SettingsLoader(f).load()

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        f = tmp_path / "settings.yaml"
        f.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            SettingsLoader(f).load()

    def test_schema_violation(self, tmp_path: Path) -> None:
        f = tmp_path / "settings.yaml"
        f.write_text("cores: 0\n")
        with pytest.raises(ConfigError):
            SettingsLoader(f).load()
