"""
SQLAlchemy catalog.

reserve() is a single conditional UPDATE:

    UPDATE products SET stock = stock - :qty WHERE id = :id AND stock >= :qty

so the database, not the application, decides who gets the last unit.
"""

import logging
from decimal import Decimal
from typing import Any, cast

from sqlalchemy import update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kungfu import Result, Ok, Error

from orderflow._types import ProductId, to_money
from orderflow.catalog._store import check_quantity
from orderflow.catalog._types import Product, ProductStatus
from orderflow.db import ProductTable, storage_error
from orderflow.errors import OrderError, OrderErrors

logger = logging.getLogger(__name__)


def _to_domain(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=to_money(cast(Decimal, row.price)),
        sale_price=to_money(cast(Decimal, row.sale_price)) if row.sale_price is not None else None,
        stock=row.stock,
        status=ProductStatus(row.status),
        sku=row.sku,
        images=tuple(row.images or ()),
        is_on_sale=row.is_on_sale,
    )


def _to_row(product: Product) -> ProductTable:
    return ProductTable(
        id=product.id,
        name=product.name,
        price=product.price,
        sale_price=product.sale_price,
        stock=product.stock,
        status=product.status.value,
        sku=product.sku,
        images=list(product.images),
        is_on_sale=product.is_on_sale,
    )


class SQLAlchemyCatalog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def add(self, product: Product) -> Result[Product, OrderError]:
        """Insert or replace a product. Used for seeding."""
        try:
            async with self._session() as session:
                await session.merge(_to_row(product))
                await session.commit()
                return Ok(product)
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def find(self, product_id: ProductId) -> Result[Product, OrderError]:
        try:
            async with self._session() as session:
                row = await session.get(ProductTable, product_id)
                if row is None:
                    return Error(OrderErrors.not_found("Product", product_id))
                return Ok(_to_domain(row))
        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def reserve(self, product_id: ProductId, quantity: int) -> Result[Product, OrderError]:
        if (err := check_quantity(quantity)) is not None:
            return Error(err)

        try:
            async with self._session() as session:
                taken = cast(CursorResult[Any], await session.execute(
                    update(ProductTable)
                    .where(ProductTable.id == product_id, ProductTable.stock >= quantity)
                    .values(stock=ProductTable.stock - quantity)
                ))

                if taken.rowcount == 0:
                    await session.rollback()
                    row = await session.get(ProductTable, product_id)
                    if row is None:
                        return Error(OrderErrors.not_found("Product", product_id))
                    return Error(OrderErrors.insufficient_stock(row.name, row.stock, quantity))

                await session.execute(
                    update(ProductTable)
                    .where(
                        ProductTable.id == product_id,
                        ProductTable.stock == 0,
                        ProductTable.status == ProductStatus.ACTIVE.value,
                    )
                    .values(status=ProductStatus.OUT_OF_STOCK.value)
                )
                await session.commit()

                row = await session.get(ProductTable, product_id, populate_existing=True)
                product = _to_domain(cast(ProductTable, row))
                logger.debug("Reserved %s x%d (stock now %d)", product_id, quantity, product.stock)
                return Ok(product)

        except SQLAlchemyError as e:
            return Error(storage_error(e))

    async def restore(self, product_id: ProductId, quantity: int) -> Result[Product, OrderError]:
        if (err := check_quantity(quantity)) is not None:
            return Error(err)

        try:
            async with self._session() as session:
                given = cast(CursorResult[Any], await session.execute(
                    update(ProductTable)
                    .where(ProductTable.id == product_id)
                    .values(stock=ProductTable.stock + quantity)
                ))

                if given.rowcount == 0:
                    await session.rollback()
                    return Error(OrderErrors.not_found("Product", product_id))

                await session.execute(
                    update(ProductTable)
                    .where(
                        ProductTable.id == product_id,
                        ProductTable.stock > 0,
                        ProductTable.status == ProductStatus.OUT_OF_STOCK.value,
                    )
                    .values(status=ProductStatus.ACTIVE.value)
                )
                await session.commit()

                row = await session.get(ProductTable, product_id, populate_existing=True)
                product = _to_domain(cast(ProductTable, row))
                logger.debug("Restored %s x%d (stock now %d)", product_id, quantity, product.stock)
                return Ok(product)

        except SQLAlchemyError as e:
            return Error(storage_error(e))


__all__ = ("SQLAlchemyCatalog",)
