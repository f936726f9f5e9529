"""Ledger Approvals Service.

Exposes the administrator approval endpoint, the realtime event stream and
health probes. Uses PostgreSQL with the ledger schema.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from approvals.api.routes import api_router
from approvals.core.config import AppEnvironment, Settings, get_settings
from approvals.core.database import get_engine, reset_engine
from approvals.core.errors import LedgerApprovalError, get_status_code
from approvals.core.logging import setup_logging
from approvals.notifications.email_queue import EmailDispatchQueue
from approvals.notifications.mailer import build_mailer
from approvals.notifications.notifier import ConnectionHub
from approvals.persistence.schema import create_ledger_schema

logger = logging.getLogger(__name__)

# API version prefix
API_V1_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan context manager."""
    settings = get_settings()
    setup_logging(settings)

    logger.info(
        "Starting Ledger Approvals Service",
        extra={
            "app": settings.app.name,
            "env": settings.app.env.value,
            "version": settings.app.version,
        },
    )

    if settings.database.auto_create_schema:
        await create_ledger_schema(get_engine())

    email_queue = EmailDispatchQueue.from_config(build_mailer(settings.email), settings.email)
    notifier = ConnectionHub()

    app.state.settings = settings
    app.state.email_queue = email_queue
    app.state.notifier = notifier

    email_queue.start()

    yield

    await email_queue.stop()
    await notifier.drain()
    await reset_engine()

    logger.info("Ledger Approvals Service stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Ledger Approvals API",
        description=(
            "Administrator approval of ledger transactions, with loan disbursement, "
            "membership activation and confirmation emails."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.env != AppEnvironment.PROD else None,
        redoc_url="/redoc" if settings.app.env != AppEnvironment.PROD else None,
        openapi_url="/openapi.json" if settings.app.env != AppEnvironment.PROD else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_allowed_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
    )

    app.include_router(api_router, prefix=API_V1_PREFIX)

    setup_telemetry(app, settings)

    @app.exception_handler(LedgerApprovalError)
    async def domain_error_handler(  # type: ignore[reportUnusedFunction]
        request: Request, exc: LedgerApprovalError
    ) -> JSONResponse:
        """Handle domain-specific errors and return appropriate HTTP responses."""
        status_code = get_status_code(exc)
        return JSONResponse(
            status_code=status_code,
            content={
                "is_ok": False,
                "detail": exc.message,
                **({"errors": exc.details} if exc.details else {}),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(  # type: ignore[reportUnusedFunction]
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions and return 500 error responses."""
        logger.exception(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
        )
        return JSONResponse(
            status_code=500,
            content={"is_ok": False, "detail": "Internal server error"},
        )

    return app


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Setup OpenTelemetry instrumentation."""
    if not settings.observability.otlp_endpoint:
        return

    resource = Resource(attributes={SERVICE_NAME: settings.observability.service_name})

    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.observability.otlp_endpoint,
        insecure=settings.observability.otlp_insecure,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "approvals.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.app.env == AppEnvironment.LOCAL,
        workers=1 if settings.app.env == AppEnvironment.LOCAL else settings.server.workers,
        log_level=settings.app.log_level.value.lower(),
    )


if __name__ == "__main__":
    run()
