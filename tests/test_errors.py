"""Tests for the error hierarchy."""

import pytest

from lxc_runner.errors import (
    AllocationError,
    AuthError,
    CommandError,
    ConfigError,
    HostError,
    NotFoundError,
    ProvisionerError,
    ReadinessTimeoutError,
    RegistrationError,
    StageError,
    TokenExpiredError,
    TransportError,
    ValidationError,
)


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [ValidationError, ConfigError, AllocationError, StageError, RegistrationError],
    )
    def test_provisioner_errors(self, cls: type) -> None:
        assert issubclass(cls, ProvisionerError)

    def test_timeout_is_stage_error(self) -> None:
        assert issubclass(ReadinessTimeoutError, StageError)

    @pytest.mark.parametrize("cls", [AuthError, NotFoundError, TransportError, TokenExpiredError])
    def test_registration_errors(self, cls: type) -> None:
        assert issubclass(cls, RegistrationError)

    def test_host_errors_are_not_provisioner_errors(self) -> None:
        assert issubclass(CommandError, HostError)
        assert not issubclass(HostError, ProvisionerError)


class TestProvisionerError:
    def test_defaults(self) -> None:
        err = AllocationError("no storage")
        assert err.stage is None
        assert err.cleanup_succeeded is None
        assert str(err) == "no storage"


class TestStageError:
    def test_message_with_stage(self) -> None:
        err = StageError("disk full", stage="sized")
        assert str(err) == "Stage sized failed: disk full"
        assert err.detail == "disk full"

    def test_stage_filled_in_later(self) -> None:
        err = StageError("disk full")
        assert str(err) == "disk full"
        err.stage = "sized"
        assert "sized" in str(err)


class TestReadinessTimeoutError:
    def test_attributes(self) -> None:
        err = ReadinessTimeoutError("Network", 30, 60.2)
        assert err.attempts == 30
        assert err.elapsed == 60.2
        assert "30 attempts" in str(err)
        assert "60.2s" in str(err)
        assert err.last_status is None

    def test_last_status_in_message(self) -> None:
        err = ReadinessTimeoutError("Network", 30, 60.2, last_status="unresolvable")
        assert str(err).endswith("last poll: unresolvable")


class TestAuthError:
    def test_carries_body(self) -> None:
        err = AuthError("bad token", response_body='{"message":"Bad credentials"}')
        assert err.response_body == '{"message":"Bad credentials"}'
        assert "bad token" in str(err)


class TestCommandError:
    def test_message(self) -> None:
        err = CommandError(["apt-get", "update"], 100, "lock held")
        assert err.exit_code == 100
        assert "apt-get update exited with 100: lock held" in str(err)
        assert "Host error" in str(err)
