"""
Shared fixtures: in-memory stores, a scripted gateway and a settable clock.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from kungfu import Ok, Error, Result

from orderflow import idempotency as I
from orderflow import payments as P
from orderflow import saga as S
from orderflow.catalog import MemoryCatalog, Product
from orderflow.config import Pricing
from orderflow.errors import OrderError, OrderErrors
from orderflow.orders import (
    Actor,
    CreateOrder,
    LineRequest,
    MemoryOrderStore,
    Order,
    OrderService,
    PaymentMethod,
    PaymentResult,
    ShippingAddress,
)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeGateway:
    """Scripted PaymentGateway; records every call."""

    def __init__(self) -> None:
        self.intents: dict[str, P.PaymentIntent] = {}
        self.created: list[tuple[int, str, dict[str, str]]] = []
        self.refunds: list[tuple[str, int, str | None]] = []
        self.fail_with: OrderError | None = None
        self._seq = 0

    def add_intent(self, intent_id: str, order_id: str, status: str = "succeeded", amount_cents: int = 0) -> None:
        self.intents[intent_id] = P.PaymentIntent(
            id=intent_id,
            status=status,
            amount_cents=amount_cents,
            currency="usd",
            receipt_email="buyer@example.com",
            metadata={"orderId": order_id},
        )

    async def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> Result[P.PaymentIntent, OrderError]:
        if self.fail_with is not None:
            return Error(self.fail_with)
        self._seq += 1
        intent = P.PaymentIntent(
            id=f"pi_{self._seq}",
            status="requires_payment_method",
            amount_cents=amount_cents,
            currency=currency,
            client_secret=f"pi_{self._seq}_secret",
            metadata=dict(metadata),
        )
        self.created.append((amount_cents, currency, dict(metadata)))
        self.intents[intent.id] = intent
        return Ok(intent)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Result[P.PaymentIntent, OrderError]:
        if self.fail_with is not None:
            return Error(self.fail_with)
        intent = self.intents.get(payment_intent_id)
        if intent is None:
            return Error(OrderErrors.payment_processor(f"No such payment_intent: {payment_intent_id}"))
        return Ok(intent)

    async def create_refund(
        self, payment_intent_id: str, amount_cents: int, reason: str | None
    ) -> Result[P.Refund, OrderError]:
        if self.fail_with is not None:
            return Error(self.fail_with)
        self.refunds.append((payment_intent_id, amount_cents, reason))
        return Ok(P.Refund(f"re_{len(self.refunds)}", "succeeded", amount_cents, payment_intent_id))


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def pricing() -> Pricing:
    return Pricing(
        tax_rate=Decimal("0.085"),
        free_shipping_threshold=Decimal("50.00"),
        shipping_cost=Decimal("5.99"),
    )


@pytest.fixture
def catalog() -> MemoryCatalog:
    return MemoryCatalog([
        Product("P1", "Mug", Decimal("10.00"), stock=5, sku="MUG-1", images=("mug.png", "mug-2.png")),
        Product("P2", "Teapot", Decimal("25.00"), stock=3, sale_price=Decimal("20.00"), is_on_sale=True),
        Product("P3", "Spoon", Decimal("2.50"), stock=1),
    ])


@pytest.fixture
def order_store() -> MemoryOrderStore:
    return MemoryOrderStore()


@pytest.fixture
def intents() -> S.MemoryIntentStore:
    return S.MemoryIntentStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def events(clock: FakeClock) -> I.MemoryStore[str]:
    return I.MemoryStore(clock=clock)


@pytest.fixture
def service(catalog, order_store, intents, pricing, gateway, clock) -> OrderService:
    return OrderService(catalog, order_store, intents, pricing, gateway=gateway, clock=clock)


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id="u1", email="u1@example.com")


@pytest.fixture
def stranger() -> Actor:
    return Actor(user_id="u2")


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin", is_admin=True)


@pytest.fixture
def address() -> ShippingAddress:
    return ShippingAddress("1 Main St", "Springfield", "IL", "62701")


@pytest.fixture
def command(address) -> Callable[..., CreateOrder]:
    def make(*lines: tuple[str, int], user_id: str = "u1", notes: str | None = None) -> CreateOrder:
        return CreateOrder(
            user_id=user_id,
            lines=tuple(LineRequest(pid, qty) for pid, qty in lines),
            shipping_address=address,
            payment_method=PaymentMethod.STRIPE,
            notes=notes,
        )
    return make


@pytest.fixture
def place(service, command) -> Callable[..., Awaitable[Order]]:
    """Create an order that must succeed."""
    async def run(*lines: tuple[str, int], user_id: str = "u1") -> Order:
        match await service.create(command(*lines, user_id=user_id)):
            case Ok(order):
                return order
            case Error(e):
                raise AssertionError(f"order creation failed: {e}")
    return run


@pytest.fixture
def pay(service, clock) -> Callable[..., Awaitable[Order]]:
    """Confirm payment for an order that must succeed."""
    async def run(order_id: str, payment_id: str = "pi_test") -> Order:
        payment = PaymentResult(id=payment_id, status="succeeded", update_time=clock(), email_address="u1@example.com")
        match await service.process_payment(order_id, payment):
            case Ok(order):
                return order
            case Error(e):
                raise AssertionError(f"payment failed: {e}")
    return run
