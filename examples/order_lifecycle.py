"""
Order lifecycle: create, pay, ship, cancel and refund over in-memory stores.

    python -m examples.order_lifecycle
"""

from datetime import datetime, timezone
from decimal import Decimal

from kungfu import Ok, Error

from orderflow import orders as O
from examples._infra import banner, demo_catalog, demo_service, run, show

CUSTOMER = O.Actor(user_id="alice", email="alice@example.com")
ADMIN = O.Actor(user_id="ops", is_admin=True)
ADDRESS = O.ShippingAddress("12 Harbour Rd", "Portland", "ME", "04101")


def place(*lines: tuple[str, int]) -> O.CreateOrder:
    return O.CreateOrder(
        user_id=CUSTOMER.user_id,
        lines=tuple(O.LineRequest(pid, qty) for pid, qty in lines),
        shipping_address=ADDRESS,
        payment_method=O.PaymentMethod.STRIPE,
    )


async def main() -> None:
    catalog = demo_catalog()
    service = demo_service(catalog)

    banner("Create: 2 mugs + 1 teapot")
    match await service.create(place(("mug", 2), ("teapot", 1))):
        case Ok(order):
            show(order)
            print(f"  items={order.items_price} tax={order.tax_price} shipping={order.shipping_price}")
            print(f"  teapot stock left: {catalog.snapshot('teapot').stock}")
        case Error(e):
            print(f"  ✗ {e}")
            return

    banner("Create: 3 teapots (only 1 left)")
    match await service.create(place(("tea", 1), ("teapot", 3))):
        case Ok(other):
            show(other)
        case Error(e):
            print(f"  ✗ {e}")
            print(f"  tea stock untouched: {catalog.snapshot('tea').stock}")

    banner("Pay, twice")
    payment = O.PaymentResult("pi_demo", "succeeded", datetime.now(timezone.utc), CUSTOMER.email)
    for _ in range(2):
        match await service.process_payment(order.id, payment):
            case Ok(paid):
                show(paid)
            case Error(e):
                print(f"  ✗ {e}")

    banner("Ship")
    update = O.StatusUpdate(O.OrderStatus.SHIPPED, tracking_number="1Z999AA1", shipping_carrier=O.ShippingCarrier.UPS)
    match await service.update_status(order.id, update, ADMIN):
        case Ok(shipped):
            show(shipped)
        case Error(e):
            print(f"  ✗ {e}")

    match await service.track("1Z999AA1"):
        case Ok(tracked):
            print(f"  tracked → {tracked.order_number} via {tracked.shipping_carrier.value}")
        case Error(e):
            print(f"  ✗ {e}")

    banner("Refund")
    for amount in (Decimal("500.00"), Decimal("15.00")):
        match await service.refund(order.id, amount, "Chipped mug", ADMIN):
            case Ok(refunded):
                show(refunded)
                print(f"  refunded {refunded.refund_amount}: {refunded.refund_reason}")
            case Error(e):
                print(f"  ✗ {amount}: {e}")

    banner("Cancel a second order")
    match await service.create(place(("tea", 4))):
        case Ok(second):
            print(f"  tea stock after order: {catalog.snapshot('tea').stock}")
        case Error(e):
            print(f"  ✗ {e}")
            return

    match await service.cancel(second.id, "Ordered by mistake", CUSTOMER):
        case Ok(cancelled):
            show(cancelled)
            print(f"  tea stock after cancel: {catalog.snapshot('tea').stock}")
        case Error(e):
            print(f"  ✗ {e}")


if __name__ == "__main__":
    run(main)
