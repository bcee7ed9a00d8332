"""
Structured logging and OpenTelemetry tracing for the catalog service
"""
from typing import Optional
import logging
import sys

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

# Third-party loggers that flood DEBUG/INFO with per-request noise
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "sqlalchemy.engine")


def _formatter(service_name: str, log_format: str) -> logging.Formatter:
    if log_format.lower() != "json":
        return logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "name": "logger", "levelname": "level"},
        static_fields={"service": service_name}
    )
    formatter.default_time_format = "%Y-%m-%dT%H:%M:%S"
    formatter.default_msec_format = "%s.%03dZ"
    return formatter


def setup_logging(service_name: str, log_level: str = "INFO", log_format: str = "json") -> logging.LoggerAdapter:
    """
    Route every log record to stdout, one JSON object per line.

    Args:
        service_name: Stamped on every JSON record as ``service``
        log_level: DEBUG, INFO, WARNING or ERROR; unknown names fall back to INFO
        log_format: ``json`` for deployments, ``text`` for a local terminal
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(service_name, log_format))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"Logging initialized for {service_name} at level {logging.getLevelName(level)}")
    return logging.LoggerAdapter(root, {"service": service_name})


def setup_tracing(
    service_name: str,
    otlp_endpoint: str,
    environment: str = "dev",
    version: Optional[str] = None,
    enabled: bool = True
) -> Optional[TracerProvider]:
    """Install a global tracer provider exporting spans over OTLP/gRPC"""
    if not enabled:
        logger.info("OpenTelemetry disabled")
        return None

    attributes = {SERVICE_NAME: service_name, DEPLOYMENT_ENVIRONMENT: environment}
    if version:
        attributes[SERVICE_VERSION] = version

    provider = TracerProvider(resource=Resource.create(attributes))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
    trace.set_tracer_provider(provider)

    # DynamoDB calls go through botocore; harmless when the relational backend is active
    BotocoreInstrumentor().instrument()

    logger.info(f"Tracing {service_name} ({environment}) to {otlp_endpoint}")
    return provider


def instrument_app(app) -> None:
    FastAPIInstrumentor.instrument_app(app)
    logger.info("FastAPI instrumented with OpenTelemetry")


def instrument_engine(engine) -> None:
    """Spans for every statement on ``engine``"""
    SQLAlchemyInstrumentor().instrument(engine=engine)
    logger.info("SQLAlchemy engine instrumented with OpenTelemetry")
