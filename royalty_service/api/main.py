"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from royalty_service.api.middleware import RequestIDMiddleware, MetricsMiddleware
from royalty_service.api.v1 import harvest, income, insights, profile, statements
from royalty_service.config import Settings
from royalty_service.infrastructure.database.session import init_db
from royalty_service.infrastructure.observability.logging import setup_logging


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or Settings()

    # Setup structured logging
    setup_logging(settings.log_level, settings.service_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create tables on startup when configured"""
        if settings.create_tables_on_startup:
            init_db(settings.database_url)
        yield

    app = FastAPI(
        title="Royalty Statement Service",
        description="Royalty statement ingestion, ledger and missing-money insights",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(statements.router, prefix="/v1", tags=["statements"])
    app.include_router(income.router, prefix="/v1", tags=["income"])
    app.include_router(profile.router, prefix="/v1", tags=["profile"])
    app.include_router(insights.router, prefix="/v1", tags=["insights"])
    app.include_router(harvest.router, prefix="/v1", tags=["harvest"])

    return app


app = create_app()
