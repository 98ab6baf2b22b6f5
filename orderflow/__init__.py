"""
orderflow: order lifecycle and inventory consistency for a storefront backend.

    from orderflow import catalog        # Products, reserve/restore
    from orderflow import orders as O    # Order aggregate, transitions, service
    from orderflow import saga as S      # Compensated creation, intent recovery
    from orderflow import payments as P  # Gateway, signed webhooks
    from orderflow import idempotency as I

The HTTP layer lives in orderflow.api and is not imported here.
"""

from orderflow import graph
from orderflow import catalog
from orderflow import idempotency
from orderflow import saga
from orderflow import orders
from orderflow import payments
from orderflow.errors import ErrorKind, FieldError, OrderError, OrderErrors, OrderFailure
from orderflow._types import Money, to_money

__version__ = "0.1.0"

__all__ = (
    "graph",
    "catalog",
    "idempotency",
    "saga",
    "orders",
    "payments",
    "ErrorKind",
    "FieldError",
    "OrderError",
    "OrderErrors",
    "OrderFailure",
    "Money",
    "to_money",
)
