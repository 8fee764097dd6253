"""OpenTelemetry tracing helpers for the provisioner.

Provides a thin wrapper around the OpenTelemetry API so the rest of the
codebase can call ``get_tracer()`` without caring whether the SDK is
installed.  When the SDK is *not* configured the API returns no-op
implementations — zero overhead in production unless explicitly opted in.

Usage::

    from lxc_runner.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("provision.stage") as span:
        span.set_attribute(ATTR_STAGE, "sized")

To activate real tracing, call :func:`configure_telemetry` once at startup
(requires the ``otel`` extra: ``pip install lxc-runner[otel]``).
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Semantic attribute keys used throughout the provisioner
# ---------------------------------------------------------------------------

ATTR_SANDBOX_ID = "lxc_runner.sandbox.id"
ATTR_SCOPE = "lxc_runner.scope"
ATTR_TARGET = "lxc_runner.target"
ATTR_NETWORK_MODE = "lxc_runner.network_mode"
ATTR_STAGE = "lxc_runner.stage"
ATTR_RETRY_ATTEMPT = "lxc_runner.retry.attempt"
ATTR_CLEANUP_SUCCEEDED = "lxc_runner.cleanup.succeeded"

_INSTRUMENTATION_NAME = "lxc_runner"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name*.

    If the OpenTelemetry SDK has not been configured the returned tracer
    is a no-op — all spans become no-ops with negligible overhead.
    """
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "lxc-runner",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider (requires ``lxc-runner[otel]``).

    Spans are exported as JSON to stdout when *export_to_console* is set,
    and batched over OTLP/gRPC when *otlp_endpoint* is given.

    Raises
    ------
    ImportError
        If ``opentelemetry-sdk`` (or, for OTLP, the exporter) is missing.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-sdk is required for configure_telemetry(). "
            "Install it with: pip install lxc-runner[otel]"
        )
        raise ImportError(msg) from exc

    provider: Any = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if export_to_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))

    trace.set_tracer_provider(provider)


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-exporter-otlp is required for OTLP export. "
            "Install it with: pip install lxc-runner[otel]"
        )
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
