"""
OpenTelemetry tracing for SSO reconciliations.

Every kopf handler gets a span through ``traced_handler`` and every pipeline
step of the reconciler opens a child span. Calls to Dex carry the current
trace context as gRPC metadata (``trace_metadata``) so a Dex deployment with
tracing enabled continues the same trace.

Tracing is off unless ``TRACING_ENABLED`` is set; without a configured
provider the OpenTelemetry API hands out no-op tracers and none of this costs
anything.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None
_initialized: bool = False

# Extra span attributes for handlers running in the current context
_resource_context: ContextVar[dict[str, str] | None] = ContextVar(
    "resource_context", default=None
)

P = ParamSpec("P")
R = TypeVar("R")


def setup_tracing(
    enabled: bool = False,
    endpoint: str = "http://localhost:4317",
    service_name: str = "sso-operator",
    sample_rate: float = 1.0,
    insecure: bool = True,
    use_simple_processor: bool = False,
) -> TracerProvider | None:
    """
    Install the global tracer provider exporting to an OTLP collector.

    Calling it again after a successful setup returns the existing provider.

    Args:
        enabled: Whether to export spans at all
        endpoint: OTLP gRPC endpoint of the collector
        service_name: ``service.name`` resource attribute
        sample_rate: Fraction of root spans kept
        insecure: Talk to the collector without TLS
        use_simple_processor: Export spans synchronously (tests, debugging)
    """
    global _tracer_provider, _initialized

    if _initialized:
        return _tracer_provider
    _initialized = True

    if not enabled:
        logger.info("Tracing disabled")
        return None

    _tracer_provider = TracerProvider(
        resource=Resource.create(
            {"service.name": service_name, "service.namespace": "sso-operator"}
        ),
        sampler=ParentBased(root=TraceIdRatioBased(sample_rate)),
    )
    exporter = OTLPSpanExporter(endpoint=endpoint, insecure=insecure)
    processor_class = SimpleSpanProcessor if use_simple_processor else BatchSpanProcessor
    _tracer_provider.add_span_processor(processor_class(exporter))
    trace.set_tracer_provider(_tracer_provider)

    logger.info(f"Tracing enabled, exporting to {endpoint} (sample rate {sample_rate})")
    return _tracer_provider


def shutdown_tracing() -> None:
    """Flush pending spans and forget the provider."""
    global _tracer_provider, _initialized

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None
    _initialized = False


def is_tracing_enabled() -> bool:
    return _initialized and _tracer_provider is not None


def get_tracer(name: str = __name__) -> Tracer:
    return trace.get_tracer(name)


def set_resource_context(
    namespace: str | None = None,
    name: str | None = None,
    resource_type: str | None = None,
    **kwargs: str,
) -> None:
    """Add attributes to the spans of handlers run from the current context."""
    context = get_resource_context()
    for key, value in (
        ("k8s.namespace", namespace),
        ("k8s.resource.name", name),
        ("k8s.resource.type", resource_type),
    ):
        if value:
            context[key] = value
    context.update(kwargs)
    _resource_context.set(context)


def get_resource_context() -> dict[str, str]:
    current = _resource_context.get()
    return dict(current) if current else {}


def clear_resource_context() -> None:
    _resource_context.set({})


def traced_handler(
    operation_name: str,
    span_kind: SpanKind = SpanKind.INTERNAL,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Wrap an async kopf handler in a span named ``operation_name``.

    The span is tagged with the ``namespace`` and ``name`` kopf passes in;
    an exception marks it failed and is re-raised unchanged.

    Example:
        @kopf.on.create("ssos", group="jenkins.io", version="v1")
        @traced_handler("reconcile_sso")
        async def reconcile_sso(body, name, namespace, **kwargs):
            ...
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            attributes = {
                "k8s.namespace": str(kwargs.get("namespace", "unknown")),
                "k8s.resource.name": str(kwargs.get("name", "unknown")),
                "k8s.resource.type": "sso",
                "kopf.handler": func.__name__,
                **get_resource_context(),
            }
            tracer = get_tracer(func.__module__)
            with tracer.start_as_current_span(
                operation_name, kind=span_kind, attributes=attributes
            ) as span:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator


def trace_metadata() -> tuple[tuple[str, str], ...]:
    """gRPC metadata carrying the W3C context of the current span, if any."""
    carrier: dict[str, str] = {}
    TraceContextTextMapPropagator().inject(carrier)
    return tuple(carrier.items())
