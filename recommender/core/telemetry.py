"""
Telemetry configuration (Metrics & Tracing).
HTTP metrics and the /metrics endpoint come from the Prometheus
instrumentator; engine spans (strategy runs, feature rebuilds) go through
`get_tracer`, which stays a no-op until tracing is enabled.
"""
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_fastapi_instrumentator import Instrumentator

from recommender.config import Settings, get_settings

# Probes are polled constantly and would drown the request histograms
UNMETERED_PATHS = ["/metrics", "/health", "/health/ready"]


def get_tracer(name: str) -> trace.Tracer:
    """Tracer for engine-level spans."""
    return trace.get_tracer(name)


def setup_metrics(app: FastAPI) -> None:
    """Expose request metrics plus the engine collectors on /metrics."""
    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=UNMETERED_PATHS,
        env_var_name="ENABLE_METRICS",
        inprogress_name="inprogress",
        inprogress_labels=True,
    )
    instrumentator.instrument(app).expose(app, include_in_schema=False)


def setup_tracing(app: FastAPI, settings: Settings) -> TracerProvider:
    """Install a global OTLP tracer provider and instrument the app."""
    resource = Resource.create(attributes={
        "service.name": settings.APP_NAME,
        "service.version": settings.APP_VERSION,
        "deployment.environment": "development" if settings.DEBUG else "production",
    })
    provider = TracerProvider(resource=resource)
    # OTLP gRPC exporter, default endpoint localhost:4317
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=",".join(UNMETERED_PATHS))
    return provider


def setup_telemetry(app: FastAPI) -> None:
    """Setup Observability according to ENABLE_PROMETHEUS and ENABLE_OTEL."""
    settings = get_settings()

    if settings.ENABLE_PROMETHEUS:
        setup_metrics(app)

    if settings.ENABLE_OTEL:
        setup_tracing(app, settings)
