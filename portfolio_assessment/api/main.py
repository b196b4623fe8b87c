"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from portfolio_assessment.api.middleware import RequestIDMiddleware, MetricsMiddleware
from portfolio_assessment.api.v1 import assessments, history
from portfolio_assessment.infrastructure.clients.narrative import narrative_configured
from portfolio_assessment.infrastructure.database.session import create_tables
from portfolio_assessment.infrastructure.observability.logging import setup_logging
from portfolio_assessment.config import Settings, settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app(config: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.auto_create_tables:
            create_tables()
        logging.info(
            "Service started",
            extra={"step": "startup", "narrative_enabled": narrative_configured(config)},
        )
        yield

    app = FastAPI(
        title="Portfolio Assessment Service",
        description="Loan tape scoring, red-flag detection and tokenization readiness",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    if config.cors_origins:
        # Browser upload form posts workbooks cross-origin
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"],
        )

    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": config.service_name,
            "narrative_enabled": narrative_configured(config),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(assessments.router, prefix="/v1", tags=["assessments"])
    app.include_router(history.router, prefix="/v1", tags=["history"])

    return app


app = create_app()
