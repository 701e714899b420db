"""OpenTelemetry tracing for the API process"""

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (BatchSpanProcessor, ConsoleSpanExporter,
                                            SpanExporter)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from sqlalchemy.ext.asyncio import AsyncEngine

from shopfloor.infrastructure.config.settings import Settings

logger = logging.getLogger(__name__)


def build_exporter(exporter_type: str, otlp_endpoint: str | None = None) -> SpanExporter | None:
    """Span exporter for TELEMETRY_EXPORTER; None means spans are sampled but not shipped"""
    if exporter_type == "none":
        return None
    if exporter_type == "otlp" and otlp_endpoint:
        return OTLPSpanExporter(
            endpoint=otlp_endpoint, insecure=otlp_endpoint.startswith("http://")
        )
    if exporter_type != "console":
        logger.warning("Unknown exporter type '%s', using console", exporter_type)
    return ConsoleSpanExporter()


class Tracing:
    """Tracer provider of the process and the instrumentations hung on it"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.provider: TracerProvider | None = None

    def start(self, app: FastAPI, engine: AsyncEngine) -> TracerProvider:
        settings = self.settings
        provider = TracerProvider(
            resource=Resource(
                attributes={
                    SERVICE_NAME: settings.app_name,
                    SERVICE_VERSION: settings.app_version,
                    "deployment.environment": settings.environment,
                }
            ),
            sampler=TraceIdRatioBased(settings.telemetry_sample_rate),
        )
        exporter = build_exporter(settings.telemetry_exporter, settings.telemetry_otlp_endpoint)
        if exporter is not None:
            provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        self.provider = provider

        FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="/health")
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine, tracer_provider=provider)
        if settings.redis_enabled:
            RedisInstrumentor().instrument(tracer_provider=provider)
        # trace_id and span_id on every log record
        LoggingInstrumentor().instrument(tracer_provider=provider, set_logging_format=True)

        logger.info(
            "Tracing started: service=%s exporter=%s",
            settings.app_name,
            settings.telemetry_exporter,
        )
        return provider

    def shutdown(self) -> None:
        """Flush pending spans"""
        if self.provider is None:
            return
        self.provider.shutdown()
        self.provider = None
        logger.info("Tracing shut down")


_tracing: Tracing | None = None


def get_tracing() -> Tracing | None:
    return _tracing


def set_tracing(tracing: Tracing | None):
    global _tracing
    _tracing = tracing
