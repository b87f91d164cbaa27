"""FastAPI application factory"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from bnpl_tracker.api.error_handlers import register_error_handlers
from bnpl_tracker.api.middleware import MetricsMiddleware, RequestIDMiddleware
from bnpl_tracker.api.v1 import data, orders, payments, platforms
from bnpl_tracker.config import Settings, settings as default_settings
from bnpl_tracker.infrastructure.database.store import LocalStore
from bnpl_tracker.infrastructure.observability.logging import setup_logging
from bnpl_tracker.services.sweeper import OverdueSweeper

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.service_name)
        store = LocalStore.from_settings(settings)
        await store.initialize()
        await store.load_dataset()  # Brings older data up to the current schema
        app.state.store = store

        sweeper_task = asyncio.create_task(
            OverdueSweeper(store).run_forever(settings.overdue_sweep_interval_seconds)
        )
        logger.info("BNPL tracker started", extra={"database_url": settings.database_url})
        try:
            yield
        finally:
            sweeper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper_task
            await store.close()
            logger.info("BNPL tracker shut down")

    app = FastAPI(
        title="BNPL Tracker",
        description="Installment tracking for buy-now-pay-later orders",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)

    @app.get("/health")
    async def health_check():
        store = getattr(app.state, "store", None)
        if store is None or not store.is_ready:
            return JSONResponse(status_code=503, content={"status": "starting", "service": settings.service_name})
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(orders.router, prefix="/v1", tags=["orders"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(platforms.router, prefix="/v1", tags=["platforms"])
    app.include_router(data.router, prefix="/v1", tags=["data"])

    return app


app = create_app()
