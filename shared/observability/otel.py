from __future__ import annotations

import os

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

SERVICE_NAMESPACE = "order-fulfillment"

_initialized_services: set[str] = set()


def _build_resource(service_name: str, environment: str | None = None) -> Resource:
    return Resource.create(
        {
            "service.name": service_name,
            "service.namespace": SERVICE_NAMESPACE,
            "deployment.environment": environment or os.getenv("APP_ENV", "local"),
        }
    )


def _exporter_mode(variable: str) -> str:
    return os.getenv(variable, "console").strip().lower() or "console"


def _span_processors(mode: str) -> list[SpanProcessor]:
    if mode == "none":
        return []
    if mode == "otlp":
        return [BatchSpanProcessor(OTLPSpanExporter())]
    return [BatchSpanProcessor(ConsoleSpanExporter())]


def _metric_readers(mode: str) -> list[MetricReader]:
    if mode == "none":
        return []
    if mode == "otlp":
        return [PeriodicExportingMetricReader(OTLPMetricExporter())]
    return [PeriodicExportingMetricReader(ConsoleMetricExporter())]


def configure_otel(service_name: str, *, environment: str | None = None) -> None:
    """Installs tracer and meter providers once per process and service.

    ``OTEL_TRACES_EXPORTER`` and ``OTEL_METRICS_EXPORTER`` pick ``otlp``,
    ``console`` (default) or ``none``.
    """
    if service_name in _initialized_services:
        return

    resource = _build_resource(service_name, environment)

    # A provider is installed even without exporters so spans carry real trace ids.
    tracer_provider = TracerProvider(resource=resource)
    for processor in _span_processors(_exporter_mode("OTEL_TRACES_EXPORTER")):
        tracer_provider.add_span_processor(processor)
    trace.set_tracer_provider(tracer_provider)

    meter_provider = MeterProvider(
        resource=resource, metric_readers=_metric_readers(_exporter_mode("OTEL_METRICS_EXPORTER"))
    )
    metrics.set_meter_provider(meter_provider)

    _initialized_services.add(service_name)
