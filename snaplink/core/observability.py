"""Observability setup: logging, tracing, metrics, and error tracking."""

import logging
import time
import uuid
from contextvars import ContextVar

import sentry_sdk
import structlog
from fastapi import FastAPI, Request, Response
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from snaplink.core.config import get_settings

settings = get_settings()

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Probe and scrape traffic, kept out of request logs and traces
QUIET_PATHS = frozenset({"/metrics", "/api/v1/health"})

# Redirects are the hot path; most should land in the lowest buckets
LATENCY_BUCKETS = (0.002, 0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0)

HTTP_REQUESTS = Counter(
    "snaplink_http_requests_total",
    "HTTP requests by route template",
    ["method", "route", "status_code"],
)

HTTP_LATENCY = Histogram(
    "snaplink_http_request_duration_seconds",
    "HTTP request latency by route template",
    ["method", "route"],
    buckets=LATENCY_BUCKETS,
)

REDIRECTS = Counter(
    "snaplink_redirects_total",
    "Slug redirects by response status",
    ["status_code"],
)

MAPPING_OPERATIONS = Counter(
    "snaplink_mapping_operations_total",
    "Mapping lifecycle operations",
    ["operation"],  # create, rename, delete
)

SLUG_COLLISIONS = Counter(
    "snaplink_slug_collisions_total",
    "Slug candidates rejected because they were taken",
    ["stage"],  # precheck, insert
)

VISITS = Counter(
    "snaplink_visits_total",
    "Visit recording outcomes",
    ["outcome"],  # recorded, dropped, failed
)

VISIT_RECORD_LATENCY = Histogram(
    "snaplink_visit_record_duration_seconds",
    "Time to store one visit",
    buckets=LATENCY_BUCKETS,
)

VISITS_IN_FLIGHT = Gauge(
    "snaplink_visits_in_flight",
    "Visit recording tasks not yet finished",
)

ANALYTICS_LATENCY = Histogram(
    "snaplink_analytics_query_duration_seconds",
    "Time to build an analytics report",
    ["time_filter"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_ctx.get()


def _route_template(request: Request) -> str:
    """Matched route path such as ``/{slug}``; raw paths would explode label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context, then logs and meters the request.

    An incoming ``X-Request-ID`` is reused, otherwise one is generated; it is
    echoed on the response either way.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_ctx.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        duration = time.perf_counter() - start_time
        route = _route_template(request)
        HTTP_REQUESTS.labels(
            method=request.method,
            route=route,
            status_code=response.status_code,
        ).inc()
        HTTP_LATENCY.labels(method=request.method, route=route).observe(duration)

        if request.url.path not in QUIET_PATHS:
            structlog.get_logger().info(
                "Request handled",
                route=route,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )

        response.headers["X-Request-ID"] = request_id
        return response


def configure_structlog() -> None:
    """Route structlog through stdlib logging; JSON lines, or console output in debug."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.debug else logging.INFO,
    )
    # SQL echo goes through its own logger; keep it off unless debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


def setup_opentelemetry(app: FastAPI) -> None:
    """Export traces over OTLP/gRPC when an endpoint is configured."""
    logger = structlog.get_logger()
    if not settings.otlp_endpoint:
        logger.info("Tracing disabled (no OTLP endpoint configured)")
        return

    provider = TracerProvider(
        resource=Resource.create({
            SERVICE_NAME: "snaplink",
            SERVICE_VERSION: settings.app_version,
        })
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(
        endpoint=settings.otlp_endpoint,
        insecure=not settings.otlp_endpoint.startswith("https://"),
    )))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=provider,
        excluded_urls=",".join(path.lstrip("/") for path in sorted(QUIET_PATHS)),
    )
    logger.info("Tracing configured", otlp_endpoint=settings.otlp_endpoint)


def setup_sentry() -> None:
    """Report unhandled errors to Sentry when a DSN is configured."""
    if not settings.sentry_dsn:
        structlog.get_logger().info("Sentry disabled (no DSN configured)")
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        release=f"snaplink@{settings.app_version}",
        environment="development" if settings.debug else "production",
        traces_sample_rate=0.05,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        # Visitor user agents and IPs stay out of Sentry
        send_default_pii=False,
        max_request_body_size="small",
    )
    structlog.get_logger().info("Sentry configured")


def setup_observability(app: FastAPI) -> None:
    """Configure logging, error tracking and tracing, and mount ``/metrics``."""
    configure_structlog()
    setup_sentry()
    setup_opentelemetry(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_redirect(status_code: int) -> None:
    REDIRECTS.labels(status_code=status_code).inc()


def record_mapping_operation(operation: str) -> None:
    MAPPING_OPERATIONS.labels(operation=operation).inc()


def record_slug_collision(stage: str) -> None:
    SLUG_COLLISIONS.labels(stage=stage).inc()


def record_visit(outcome: str, duration: float | None = None) -> None:
    """Count a recording outcome; ``duration`` is observed only when given."""
    VISITS.labels(outcome=outcome).inc()
    if duration is not None:
        VISIT_RECORD_LATENCY.observe(duration)


def set_visits_in_flight(count: int) -> None:
    VISITS_IN_FLIGHT.set(count)


def record_analytics_query(time_filter: str, duration: float) -> None:
    ANALYTICS_LATENCY.labels(time_filter=time_filter).observe(duration)
