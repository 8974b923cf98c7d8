"""OpenTelemetry tracing and metrics middleware.

Creates a span and records metrics for each route resolution.

Install with: uv add "navmux[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from navmux.router import Middleware, RouteFunction
    from navmux.tree import Match

try:
    from opentelemetry import metrics, trace
    from opentelemetry.trace import SpanKind, TracerProvider
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: uv add 'navmux[otel]'"
    )
    raise ImportError(msg) from e

from navmux.url import split_url

# route resolution is in-memory, so buckets are much finer than for requests
_DURATION_BUCKETS = (
    0.00001,
    0.000025,
    0.00005,
    0.0001,
    0.00025,
    0.0005,
    0.001,
    0.0025,
    0.005,
    0.01,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Middleware[Any]:
    """Create OpenTelemetry tracing and metrics middleware.

    Creates an internal span per resolved url. The span is named
    ``route <pattern>`` when a route matches and ``navmux.route`` otherwise,
    and carries the matched pattern and its params as attributes. Decoding
    errors are recorded on the span and re-raised.

    Metrics emitted:
        - ``navmux.route.duration`` (histogram, seconds)
        - ``navmux.route.not_found`` (counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Returns:
        Middleware function that wraps the route function.

    Example:
        router.use(otel())
    """
    tracer = trace.get_tracer(
        "navmux",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "navmux",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "navmux.route.duration",
        unit="s",
        description="Duration of route resolution.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    not_found_counter = meter.create_counter(
        "navmux.route.not_found",
        unit="{url}",
        description="Number of urls that matched no route.",
    )

    def middleware(route: RouteFunction[Any]) -> RouteFunction[Any]:
        def traced_route(url: str) -> Match[Any] | None:
            path, query = split_url(url)
            attributes: dict[str, str] = {"url.path": path}
            if query:
                attributes["url.query"] = query

            start = time.perf_counter()
            with tracer.start_as_current_span(
                "navmux.route",
                kind=SpanKind.INTERNAL,
                attributes=attributes,
                record_exception=True,
                set_status_on_exception=True,
            ) as span:
                match = None
                try:
                    match = route(url)
                finally:
                    matched = match is not None
                    span.set_attribute("navmux.matched", matched)
                    duration_histogram.record(
                        time.perf_counter() - start, {"navmux.matched": matched}
                    )

                if match is None:
                    not_found_counter.add(1)
                    return None

                span.update_name(f"route {match.route}")
                span.set_attribute("navmux.route", match.route)
                for key, value in match.params.items():
                    span.set_attribute(f"navmux.route.param.{key}", value)
                return match

        return traced_route

    return middleware
