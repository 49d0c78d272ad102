"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, Sentry,
lifespan events that build the Pipedrive gateway and sync engine, and the
v1 API router (health + LendSaaS webhook).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.lendsync.config import get_settings
from src.lendsync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.lendsync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.lendsync.api.v1.router import router as v1_router
from src.lendsync.deals.crm.pipedrive import PipedriveConfig, PipedriveGateway
from src.lendsync.deals.crm.sync import SyncEngine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire Pipedrive on startup, close its client on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # Missing credentials leave the engine unset; the webhook answers 503
    # while / and /health keep working.
    app.state.pipedrive_gateway = None
    app.state.sync_engine = None
    if settings.pipedrive_configured():
        config = PipedriveConfig.from_settings(settings)
        gateway = PipedriveGateway(config)
        app.state.pipedrive_gateway = gateway
        app.state.sync_engine = SyncEngine(gateway=gateway, config=config)
        log.info(
            "pipedrive.sync_engine_initialized",
            domain=config.domain,
            pipeline_id=config.pipeline_id,
            max_retries=config.max_retries,
        )
    else:
        log.warning(
            "pipedrive.not_configured",
            hint="set PIPEDRIVE_DOMAIN and PIPEDRIVE_TOKEN",
        )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    gateway = getattr(app.state, "pipedrive_gateway", None)
    if gateway is not None:
        await gateway.aclose()
        log.info("pipedrive.http_client_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="LendSaaS Pipedrive Sync",
        version="0.1.0",
        description="Syncs LendSaaS loan-servicing webhooks into Pipedrive deals",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()


def run() -> None:
    """Console entrypoint: serve the app with uvicorn on HOST:PORT."""
    settings = get_settings()
    uvicorn.run(
        "src.lendsync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
