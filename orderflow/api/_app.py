"""
Application factory.

    app = create_app()                      # services opened from settings on startup
    app = create_app(services=services)     # pre-built services, e.g. in tests
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orderflow.api._errors import register_exception_handlers
from orderflow.api._routes import orders, payments
from orderflow.config import Settings, get_settings
from orderflow.wiring import Services, open_services

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            yield
            return
        async with open_services(settings) as opened:
            app.state.services = opened
            logger.info("orderflow API started")
            yield
        logger.info("orderflow API stopped")

    app = FastAPI(title="orderflow", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    register_exception_handlers(app)
    app.include_router(orders)
    app.include_router(payments)
    return app


__all__ = ("create_app",)
