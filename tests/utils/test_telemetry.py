"""Tests for OpenTelemetry tracing helpers."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from opentelemetry import trace

from lxc_runner.utils.telemetry import (
    ATTR_SANDBOX_ID,
    ATTR_STAGE,
    _INSTRUMENTATION_NAME,
    configure_telemetry,
    get_tracer,
)


class TestGetTracer:
    def test_returns_tracer(self) -> None:
        assert isinstance(get_tracer("lxc_runner.provisioning"), trace.Tracer)

    def test_default_name(self) -> None:
        assert _INSTRUMENTATION_NAME == "lxc_runner"
        assert isinstance(get_tracer(), trace.Tracer)

    def test_noop_stage_span(self) -> None:
        with get_tracer("test.noop").start_as_current_span("provision.stage") as span:
            span.set_attribute(ATTR_STAGE, "sized")
            span.set_attribute(ATTR_SANDBOX_ID, 101)


class TestConfigureTelemetry:
    def test_raises_without_sdk(self) -> None:
        with patch.dict("sys.modules", {"opentelemetry.sdk.resources": None}):
            with pytest.raises(ImportError, match="opentelemetry-sdk"):
                configure_telemetry()

    def test_otlp_raises_without_exporter(self) -> None:
        pytest.importorskip("opentelemetry.sdk.trace")
        with patch.dict("sys.modules", {"opentelemetry.exporter.otlp.proto.grpc.trace_exporter": None}):
            with patch("lxc_runner.utils.telemetry.trace.set_tracer_provider"):
                with pytest.raises(ImportError, match="opentelemetry-exporter-otlp"):
                    configure_telemetry(export_to_console=False, otlp_endpoint="http://localhost:4317")

    def test_installs_provider(self) -> None:
        pytest.importorskip("opentelemetry.sdk.trace")
        with patch("lxc_runner.utils.telemetry.trace.set_tracer_provider") as set_provider:
            configure_telemetry(service_name="lxc-runner-test")
        set_provider.assert_called_once()


class TestAttributeConstants:
    def test_namespaced(self) -> None:
        assert ATTR_STAGE.startswith("lxc_runner.")
        assert ATTR_SANDBOX_ID.startswith("lxc_runner.")
