"""
Orders: the order aggregate, its state machine and lifecycle service.

    from orderflow import orders as O

    service = O.OrderService(catalog, O.MemoryOrderStore(), S.MemoryIntentStore(), pricing)

    result = await service.create(O.CreateOrder(
        user_id="u1",
        lines=(O.LineRequest("p1", 2),),
        shipping_address=O.ShippingAddress("1 Main St", "Springfield", "IL", "62701"),
        payment_method=O.PaymentMethod.STRIPE,
    ))
"""

from orderflow.orders._types import (
    OrderStatus,
    PaymentMethod,
    ShippingCarrier,
    STATUS_COLORS,
    OrderItem,
    ShippingAddress,
    PaymentResult,
    LineRequest,
    CreateOrder,
    Actor,
    StatusUpdate,
    Order,
)
from orderflow.orders._totals import Totals, compute_totals, recompute_totals, stored_totals, reconciles
from orderflow.orders._machine import (
    REGULAR_TRANSITIONS,
    CANCELLABLE,
    is_regular,
    process_payment,
    update_status,
    cancel,
    check_refund,
    refund,
)
from orderflow.orders._store import OrderPage, OrderStore, MemoryOrderStore, PAGE_LIMIT_MAX
from orderflow.orders._sqlalchemy import SQLAlchemyOrderStore
from orderflow.orders._graph import OrderContext, CheckedCart, DraftOrder, PlacedOrder
from orderflow.orders._service import OrderService, RefundGateway

__all__ = (
    "OrderStatus",
    "PaymentMethod",
    "ShippingCarrier",
    "STATUS_COLORS",
    "OrderItem",
    "ShippingAddress",
    "PaymentResult",
    "LineRequest",
    "CreateOrder",
    "Actor",
    "StatusUpdate",
    "Order",
    "Totals",
    "compute_totals",
    "recompute_totals",
    "stored_totals",
    "reconciles",
    "REGULAR_TRANSITIONS",
    "CANCELLABLE",
    "is_regular",
    "process_payment",
    "update_status",
    "cancel",
    "check_refund",
    "refund",
    "OrderPage",
    "OrderStore",
    "MemoryOrderStore",
    "PAGE_LIMIT_MAX",
    "SQLAlchemyOrderStore",
    "OrderContext",
    "CheckedCart",
    "DraftOrder",
    "PlacedOrder",
    "OrderService",
    "RefundGateway",
)
