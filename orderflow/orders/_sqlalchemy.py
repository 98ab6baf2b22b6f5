"""
SQLAlchemy order store.

Line items, shipping address and payment result are embedded JSON
documents on the order row; money inside them is stored as strings so
the Decimal snapshot survives the round trip exactly.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, cast

from sqlalchemy import select, func, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from orderflow._types import OrderId, UserId, as_utc, to_money
from orderflow.db import OrderTable, storage_error
from orderflow.errors import OrderError, OrderErrors
from orderflow.orders._store import OrderPage, check_paging
from orderflow.orders._types import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentResult,
    ShippingAddress,
    ShippingCarrier,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Row mapping
# ═══════════════════════════════════════════════════════════════════════════════


def _money(value: Any) -> Decimal:
    return to_money(cast(Decimal, value))


def _maybe_utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


def _item_to_json(item: OrderItem) -> dict[str, object]:
    return {
        "product_id": item.product_id,
        "name": item.name,
        "price": str(item.price),
        "quantity": item.quantity,
        "image": item.image,
        "sku": item.sku,
    }


def _item_from_json(raw: dict[str, Any]) -> OrderItem:
    return OrderItem(
        product_id=raw["product_id"],
        name=raw["name"],
        price=to_money(raw["price"]),
        quantity=int(raw["quantity"]),
        image=raw.get("image") or "",
        sku=raw.get("sku"),
    )


def _address_to_json(address: ShippingAddress) -> dict[str, str]:
    return {
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "zip_code": address.zip_code,
        "country": address.country,
    }


def _payment_to_json(payment: PaymentResult | None) -> dict[str, object] | None:
    if payment is None:
        return None
    return {
        "id": payment.id,
        "status": payment.status,
        "update_time": payment.update_time.isoformat(),
        "email_address": payment.email_address,
    }


def _payment_from_json(raw: dict[str, Any] | None) -> PaymentResult | None:
    if raw is None:
        return None
    return PaymentResult(
        id=raw["id"],
        status=raw["status"],
        update_time=as_utc(datetime.fromisoformat(raw["update_time"])),
        email_address=raw.get("email_address"),
    )


def _to_domain(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        order_items=tuple(_item_from_json(i) for i in row.order_items),
        shipping_address=ShippingAddress(**row.shipping_address),
        payment_method=PaymentMethod(row.payment_method),
        payment_result=_payment_from_json(row.payment_result),
        items_price=_money(row.items_price),
        tax_price=_money(row.tax_price),
        shipping_price=_money(row.shipping_price),
        total_price=_money(row.total_price),
        status=OrderStatus(row.status),
        is_paid=row.is_paid,
        paid_at=_maybe_utc(row.paid_at),
        is_delivered=row.is_delivered,
        delivered_at=_maybe_utc(row.delivered_at),
        tracking_number=row.tracking_number,
        shipping_carrier=ShippingCarrier(row.shipping_carrier) if row.shipping_carrier else None,
        estimated_delivery=_maybe_utc(row.estimated_delivery),
        notes=row.notes,
        cancel_reason=row.cancel_reason,
        refund_amount=_money(row.refund_amount) if row.refund_amount is not None else None,
        refund_reason=row.refund_reason,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _columns(order: Order) -> dict[str, Any]:
    return {
        "user_id": order.user_id,
        "order_items": [_item_to_json(i) for i in order.order_items],
        "shipping_address": _address_to_json(order.shipping_address),
        "payment_method": order.payment_method.value,
        "payment_result": _payment_to_json(order.payment_result),
        "items_price": order.items_price,
        "tax_price": order.tax_price,
        "shipping_price": order.shipping_price,
        "total_price": order.total_price,
        "status": order.status.value,
        "is_paid": order.is_paid,
        "paid_at": order.paid_at,
        "is_delivered": order.is_delivered,
        "delivered_at": order.delivered_at,
        "tracking_number": order.tracking_number,
        "shipping_carrier": order.shipping_carrier.value if order.shipping_carrier else None,
        "estimated_delivery": order.estimated_delivery,
        "notes": order.notes,
        "cancel_reason": order.cancel_reason,
        "refund_amount": order.refund_amount,
        "refund_reason": order.refund_reason,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyOrderStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def get(self, order_id: OrderId) -> Result[Order, OrderError]:
        try:
            async with self._session() as session:
                row = await session.get(OrderTable, order_id)
                if row is None:
                    return Error(OrderErrors.not_found("Order", order_id))
                return Ok(_to_domain(row))
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def exists(self, order_id: OrderId) -> Result[bool, OrderError]:
        try:
            async with self._session() as session:
                found = await session.scalar(select(OrderTable.id).where(OrderTable.id == order_id))
                return Ok(found is not None)
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def insert(self, order: Order) -> Result[Order, OrderError]:
        try:
            async with self._session() as session:
                session.add(OrderTable(id=order.id, **_columns(order)))
                await session.commit()
                return Ok(order)
        except IntegrityError:
            return Error(OrderErrors.internal(f"Order {order.id} already exists"))
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def save(self, order: Order, expected: OrderStatus) -> Result[Order, OrderError]:
        try:
            async with self._session() as session:
                written = cast(CursorResult[Any], await session.execute(
                    update(OrderTable)
                    .where(OrderTable.id == order.id, OrderTable.status == expected.value)
                    .values(**_columns(order))
                ))

                if written.rowcount == 0:
                    await session.rollback()
                    row = await session.get(OrderTable, order.id)
                    if row is None:
                        return Error(OrderErrors.not_found("Order", order.id))
                    return Error(OrderErrors.order_changed(order.id, expected.value, row.status))

                await session.commit()
                return Ok(order)
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def by_tracking(self, tracking_number: str) -> Result[Order, OrderError]:
        try:
            async with self._session() as session:
                stmt = select(OrderTable).where(OrderTable.tracking_number == tracking_number).limit(1)
                row = (await session.execute(stmt)).scalar_one_or_none()
                if row is None:
                    return Error(OrderErrors.tracking_not_found(tracking_number))
                return Ok(_to_domain(row))
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def list_for_user(self, user_id: UserId, page: int, limit: int) -> Result[OrderPage, OrderError]:
        if (err := check_paging(page, limit)) is not None:
            return Error(err)

        try:
            async with self._session() as session:
                total = await session.scalar(
                    select(func.count()).select_from(OrderTable).where(OrderTable.user_id == user_id)
                )
                stmt = (
                    select(OrderTable)
                    .where(OrderTable.user_id == user_id)
                    .order_by(OrderTable.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
                rows = (await session.execute(stmt)).scalars().all()
                return Ok(OrderPage(tuple(_to_domain(r) for r in rows), int(total or 0), page, limit))
        except SQLAlchemyError as e:
            return Error(storage_error(e))


__all__ = ("SQLAlchemyOrderStore",)
