"""
Catalog: products and the reserve/restore capability orders consume.

    from orderflow import catalog

    store = catalog.MemoryCatalog([catalog.Product("p1", "Mug", Decimal("10.00"), stock=5)])
    match await store.reserve("p1", 2):
        case Ok(product): ...       # product.stock == 3
        case Error(e): ...          # NOT_FOUND / INSUFFICIENT_STOCK, stock untouched
"""

from orderflow.catalog._types import ProductStatus, Product
from orderflow.catalog._store import CatalogStore, MemoryCatalog, check_quantity
from orderflow.catalog._sqlalchemy import SQLAlchemyCatalog

__all__ = (
    "ProductStatus",
    "Product",
    "CatalogStore",
    "MemoryCatalog",
    "SQLAlchemyCatalog",
    "check_quantity",
)
