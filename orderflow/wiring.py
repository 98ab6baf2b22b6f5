"""
Wiring: stores, gateway and services built from settings.

    async with open_services(get_settings()) as services:
        await services.orders.create(command)

Everything is SQLAlchemy-backed against DATABASE_URL; the engine and the
gateway's HTTP client are closed on exit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

from orderflow import db
from orderflow import idempotency as I
from orderflow import payments as P
from orderflow.catalog import SQLAlchemyCatalog
from orderflow.config import Settings
from orderflow.orders import OrderService, SQLAlchemyOrderStore
from orderflow.saga import SQLAlchemyIntentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Services:
    settings: Settings
    orders: OrderService
    payments: P.PaymentService
    webhooks: P.WebhookHandler


def build_services(
    settings: Settings,
    orders: OrderService,
    gateway: P.PaymentGateway,
    events: I.Store[str],
) -> Services:
    """Payment flows and webhook handling on top of an order service."""
    return Services(
        settings=settings,
        orders=orders,
        payments=P.PaymentService(orders, gateway, currency=settings.CURRENCY),
        webhooks=P.WebhookHandler(
            orders,
            events,
            secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance_seconds=settings.WEBHOOK_TOLERANCE_SECONDS,
            dedup_ttl=timedelta(hours=settings.WEBHOOK_DEDUP_TTL_HOURS),
            claim_lease=timedelta(seconds=settings.WEBHOOK_CLAIM_LEASE_SECONDS),
        ),
    )


@asynccontextmanager
async def open_services(settings: Settings) -> AsyncIterator[Services]:
    session_factory, engine = await db.create_database(settings.DATABASE_URL, echo=settings.DB_ECHO)
    gateway = P.StripeGateway.from_settings(settings)

    orders = OrderService(
        catalog=SQLAlchemyCatalog(session_factory),
        orders=SQLAlchemyOrderStore(session_factory),
        intents=SQLAlchemyIntentStore(session_factory),
        pricing=settings.pricing(),
        gateway=gateway,
        strict_transitions=settings.STRICT_STATUS_TRANSITIONS,
    )
    logger.info("Services ready (database %s)", engine.url.render_as_string(hide_password=True))

    try:
        yield build_services(settings, orders, gateway, db.webhook_event_store(session_factory))
    finally:
        await gateway.aclose()
        await engine.dispose()


__all__ = ("Services", "build_services", "open_services")
