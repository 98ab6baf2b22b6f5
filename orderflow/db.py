"""
Database layer: SQLAlchemy tables and session factory.

The order row mirrors the persisted order document field for field;
line items, address and payment result are embedded as JSON.
"""

import logging
from datetime import datetime

from sqlalchemy import String, DateTime, Integer, Text, Numeric, Boolean, JSON
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from orderflow._types import Clock, utcnow
from orderflow.errors import OrderError, OrderErrors
from orderflow.idempotency import IdempotencyMixin, SQLAlchemyStore

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════

class Base(DeclarativeBase):
    pass


MoneyColumn = Numeric(12, 2, asdecimal=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

class ProductTable(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[object] = mapped_column(MoneyColumn, nullable=False)
    sale_price: Mapped[object | None] = mapped_column(MoneyColumn, nullable=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_on_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class OrderTable(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    order_items: Mapped[list[dict[str, object]]] = mapped_column(JSON, nullable=False)
    shipping_address: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_result: Mapped[dict[str, object] | None] = mapped_column(JSON, nullable=True)

    items_price: Mapped[object] = mapped_column(MoneyColumn, nullable=False)
    tax_price: Mapped[object] = mapped_column(MoneyColumn, nullable=False)
    shipping_price: Mapped[object] = mapped_column(MoneyColumn, nullable=False)
    total_price: Mapped[object] = mapped_column(MoneyColumn, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending", index=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_delivered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    shipping_carrier: Mapped[str | None] = mapped_column(String(20), nullable=True)
    estimated_delivery: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    refund_amount: Mapped[object | None] = mapped_column(MoneyColumn, nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Order intents: saga log for order creation
# ═══════════════════════════════════════════════════════════════════════════════

class OrderIntentTable(Base):
    __tablename__ = "order_intents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lines: Mapped[list[dict[str, object]]] = mapped_column(JSON, nullable=False)
    reserved: Mapped[list[dict[str, object]]] = mapped_column(JSON, nullable=False, default=list)
    released: Mapped[list[dict[str, object]]] = mapped_column(JSON, nullable=False, default=list)
    state: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook events: processed gateway deliveries
# ═══════════════════════════════════════════════════════════════════════════════

class WebhookEventTable(Base, IdempotencyMixin):
    """
    One row per gateway event id.

    Note: IdempotencyMixin adds idempotency_key/status/value/error/expires_at.
    """
    __tablename__ = "webhook_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════

def storage_error(exc: Exception) -> OrderError:
    """Log the driver error and hand callers a detail-free INTERNAL."""
    logger.error("Storage failure: %s", exc, exc_info=exc)
    return OrderErrors.internal("Storage unavailable")


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    echo: bool = False,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=echo)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


def webhook_event_store(
    session_factory: async_sessionmaker[AsyncSession],
    clock: Clock = utcnow,
) -> SQLAlchemyStore[WebhookEventTable]:
    """Dedup store for gateway events, one webhook_events row per event id."""
    return SQLAlchemyStore(
        session_factory,
        model=WebhookEventTable,
        to_pending=lambda key, now: WebhookEventTable(idempotency_key=key, created_at=now),
        clock=clock,
    )


__all__ = (
    "Base",
    "ProductTable",
    "OrderTable",
    "OrderIntentTable",
    "WebhookEventTable",
    "storage_error",
    "create_database",
    "webhook_event_store",
)
