"""OpenTelemetry configuration helpers."""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_NAMESPACE, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from stock_ledger.config import LedgerSettings

logger = logging.getLogger(__name__)

_TELEMETRY_INITIALISED = False


def _build_resource(settings: LedgerSettings) -> Resource:
    attributes: dict[str, Any] = {
        SERVICE_NAME: settings.telemetry_service_name,
        SERVICE_NAMESPACE: "stock-ledger",
    }
    return Resource.create(attributes)


def setup_telemetry(settings: LedgerSettings) -> TracerProvider | None:
    """Install a tracer provider exporting spans over OTLP."""

    global _TELEMETRY_INITIALISED  # noqa: PLW0603 - single initialisation guard

    if _TELEMETRY_INITIALISED:
        return None

    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled via configuration")
        return None

    resource = _build_resource(settings)
    sampler = ParentBased(TraceIdRatioBased(settings.telemetry_sample_ratio))
    provider = TracerProvider(resource=resource, sampler=sampler)

    exporter_options: dict[str, Any] = {"insecure": settings.telemetry_otlp_insecure}
    if settings.telemetry_otlp_endpoint:
        exporter_options["endpoint"] = settings.telemetry_otlp_endpoint
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_options)))

    trace.set_tracer_provider(provider)
    _TELEMETRY_INITIALISED = True
    logger.info(
        "Telemetry initialised for %s (endpoint=%s)",
        settings.telemetry_service_name,
        settings.telemetry_otlp_endpoint or "default",
    )
    return provider


__all__ = ["setup_telemetry"]
