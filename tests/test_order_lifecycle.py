"""
Tests for the order lifecycle: create, pay, update status, cancel, refund.
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from kungfu import Ok, Error

from orderflow.catalog import MemoryCatalog, Product
from orderflow.errors import ErrorKind, OrderErrors
from orderflow.orders import (
    OrderService,
    OrderStatus,
    PaymentResult,
    ShippingCarrier,
    StatusUpdate,
)


def expect_error(result, kind: ErrorKind):
    match result:
        case Error(e):
            assert e.kind == kind, f"expected {kind}, got {e}"
            return e
        case Ok(value):
            pytest.fail(f"expected {kind}, got Ok({value!r})")


class TestCreate:
    async def test_create_reserves_stock_and_prices_order(self, service, command, catalog):
        match await service.create(command(("P1", 2))):
            case Ok(order):
                pass
            case Error(e):
                pytest.fail(str(e))

        assert catalog.snapshot("P1").stock == 3
        assert order.items_price == Decimal("20.00")
        assert order.status == OrderStatus.PENDING
        assert not order.is_paid
        assert not order.is_delivered

    async def test_lines_are_snapshots(self, place, catalog):
        order = await place(("P1", 1), ("P2", 1))

        mug, teapot = order.order_items
        assert (mug.name, mug.price, mug.image, mug.sku) == ("Mug", Decimal("10.00"), "mug.png", "MUG-1")
        assert teapot.price == Decimal("20.00")

        catalog.add(Product("P1", "Renamed Mug", Decimal("99.00"), stock=100))

        assert order.order_items[0].name == "Mug"
        assert order.order_items[0].price == Decimal("10.00")

    async def test_insufficient_stock_leaves_catalog_unchanged(self, service, command, catalog):
        expect_error(await service.create(command(("P1", 10))), ErrorKind.INSUFFICIENT_STOCK)

        assert catalog.snapshot("P1").stock == 5

    async def test_repeated_product_lines_are_checked_together(self, service, command, catalog):
        expect_error(await service.create(command(("P1", 3), ("P1", 3))), ErrorKind.INSUFFICIENT_STOCK)

        assert catalog.snapshot("P1").stock == 5

    async def test_missing_product_fails_before_any_reservation(self, service, command, catalog):
        expect_error(await service.create(command(("P1", 1), ("ghost", 1))), ErrorKind.NOT_FOUND)

        assert catalog.snapshot("P1").stock == 5

    async def test_validation_reports_every_field(self, service, command, address):
        bad = replace(
            command(("P1", 0), notes="x" * 501),
            shipping_address=replace(address, street=" ", zip_code=""),
        )

        error = expect_error(await service.create(bad), ErrorKind.VALIDATION)

        fields = {f.field for f in error.fields}
        assert fields == {"orderItems[0].quantity", "shippingAddress.street", "shippingAddress.zipCode", "notes"}

    async def test_empty_cart_rejected(self, service, command):
        error = expect_error(await service.create(command()), ErrorKind.VALIDATION)

        assert error.fields[0].field == "orderItems"

    async def test_order_number_and_color(self, place):
        order = await place(("P1", 1))

        assert order.order_number == "#" + order.id[-8:].upper()
        assert order.status_color == "yellow"


class TestPayment:
    async def test_payment_moves_to_processing(self, place, pay, clock):
        order = await place(("P1", 1))

        paid = await pay(order.id)

        assert paid.is_paid
        assert paid.paid_at == clock()
        assert paid.status == OrderStatus.PROCESSING
        assert paid.payment_result.id == "pi_test"

    async def test_duplicate_confirmation_is_noop(self, place, pay, clock, order_store):
        order = await place(("P1", 1))
        first = await pay(order.id, "pi_first")

        clock.advance(minutes=5)
        second = await pay(order.id, "pi_second")

        assert second.paid_at == first.paid_at
        assert second.payment_result.id == "pi_first"
        assert order_store.snapshot(order.id) == first

    async def test_payment_for_missing_order(self, service, clock):
        payment = PaymentResult("pi", "succeeded", clock())

        expect_error(await service.process_payment("missing", payment), ErrorKind.NOT_FOUND)

    async def test_late_payment_keeps_cancelled_status(self, service, place, pay, customer):
        order = await place(("P1", 1))
        await service.cancel(order.id, None, customer)

        paid = await pay(order.id)

        assert paid.is_paid
        assert paid.status == OrderStatus.CANCELLED


class TestUpdateStatus:
    async def test_only_admins(self, service, place, customer):
        order = await place(("P1", 1))

        expect_error(
            await service.update_status(order.id, StatusUpdate(OrderStatus.SHIPPED), customer),
            ErrorKind.FORBIDDEN,
        )

    async def test_ship_with_tracking_then_track(self, service, place, pay, admin):
        order = await place(("P1", 1))
        await pay(order.id)

        update = StatusUpdate(OrderStatus.SHIPPED, tracking_number="1Z999", shipping_carrier=ShippingCarrier.UPS)
        match await service.update_status(order.id, update, admin):
            case Ok(shipped):
                assert shipped.status == OrderStatus.SHIPPED
                assert shipped.shipping_carrier == ShippingCarrier.UPS
            case Error(e):
                pytest.fail(str(e))

        match await service.track("1Z999"):
            case Ok(found):
                assert found.id == order.id
            case Error(e):
                pytest.fail(str(e))

    async def test_track_unknown_number(self, service):
        error = expect_error(await service.track("nope"), ErrorKind.NOT_FOUND)

        assert "nope" in error.message

    async def test_delivered_stamps_once(self, service, place, admin, clock):
        order = await place(("P1", 1))
        first_stamp = clock()

        match await service.update_status(order.id, StatusUpdate(OrderStatus.DELIVERED), admin):
            case Ok(delivered):
                assert delivered.is_delivered
                assert delivered.delivered_at == first_stamp
            case Error(e):
                pytest.fail(str(e))

        clock.advance(hours=1)
        match await service.update_status(order.id, StatusUpdate(OrderStatus.DELIVERED, notes="left at door"), admin):
            case Ok(again):
                assert again.delivered_at == first_stamp
                assert again.notes == "left at door"
            case Error(e):
                pytest.fail(str(e))

    async def test_irregular_jump_allowed_by_default(self, service, place, admin):
        order = await place(("P1", 1))

        match await service.update_status(order.id, StatusUpdate(OrderStatus.DELIVERED), admin):
            case Ok(updated):
                assert updated.status == OrderStatus.DELIVERED
            case Error(e):
                pytest.fail(str(e))

    async def test_strict_mode_rejects_irregular_jump(self, catalog, order_store, intents, pricing, clock, place, admin):
        order = await place(("P1", 1))
        strict = OrderService(catalog, order_store, intents, pricing, clock=clock, strict_transitions=True)

        expect_error(
            await strict.update_status(order.id, StatusUpdate(OrderStatus.DELIVERED), admin),
            ErrorKind.INVALID_TRANSITION,
        )
        assert order_store.snapshot(order.id).status == OrderStatus.PENDING


class FlakyCatalog(MemoryCatalog):
    """Restores of one product always fail."""

    def __init__(self, products, broken: str) -> None:
        super().__init__(products)
        self.broken = broken

    async def restore(self, product_id, quantity):
        if product_id == self.broken:
            return Error(OrderErrors.not_found("Product", product_id))
        return await super().restore(product_id, quantity)


class TestCancel:
    async def test_cancel_processing_order_restores_every_line(self, service, place, pay, catalog, customer):
        order = await place(("P1", 2), ("P2", 1))
        await pay(order.id)
        assert (catalog.snapshot("P1").stock, catalog.snapshot("P2").stock) == (3, 2)

        match await service.cancel(order.id, "changed mind", customer):
            case Ok(cancelled):
                assert cancelled.status == OrderStatus.CANCELLED
                assert cancelled.cancel_reason == "changed mind"
            case Error(e):
                pytest.fail(str(e))

        assert catalog.snapshot("P1").stock == 5
        assert catalog.snapshot("P2").stock == 3

    async def test_cancel_twice_rejected_without_double_restore(self, service, place, catalog, customer):
        order = await place(("P1", 2))
        await service.cancel(order.id, None, customer)

        expect_error(await service.cancel(order.id, None, customer), ErrorKind.INVALID_TRANSITION)

        assert catalog.snapshot("P1").stock == 5

    async def test_write_from_stale_read_rejected(self, service, place, order_store, customer, clock):
        order = await place(("P1", 2))
        await service.cancel(order.id, None, customer)

        paid = replace(order, status=OrderStatus.PROCESSING, is_paid=True, paid_at=clock())
        err = expect_error(await order_store.save(paid, OrderStatus.PENDING), ErrorKind.INVALID_TRANSITION)

        assert "changed concurrently" in err.message
        assert order_store.snapshot(order.id).status == OrderStatus.CANCELLED
        assert not order_store.snapshot(order.id).is_paid

    async def test_delivered_order_cannot_be_cancelled(self, service, place, customer, admin, catalog):
        order = await place(("P1", 1))
        await service.update_status(order.id, StatusUpdate(OrderStatus.DELIVERED), admin)

        expect_error(await service.cancel(order.id, None, customer), ErrorKind.INVALID_TRANSITION)
        assert catalog.snapshot("P1").stock == 4

    async def test_stranger_cannot_cancel(self, service, place, stranger):
        order = await place(("P1", 1))

        expect_error(await service.cancel(order.id, None, stranger), ErrorKind.FORBIDDEN)

    async def test_admin_can_cancel(self, service, place, admin):
        order = await place(("P1", 1))

        assert isinstance(await service.cancel(order.id, "fraud", admin), Ok)

    async def test_reason_length_limited(self, service, place, customer):
        order = await place(("P1", 1))

        expect_error(await service.cancel(order.id, "x" * 201, customer), ErrorKind.VALIDATION)

    async def test_failed_restore_is_skipped(self, order_store, intents, pricing, clock, command, customer):
        catalog = FlakyCatalog(
            [Product("A", "Cup", Decimal("3.00"), stock=4), Product("B", "Saucer", Decimal("2.00"), stock=4)],
            broken="A",
        )
        service = OrderService(catalog, order_store, intents, pricing, clock=clock)
        match await service.create(command(("A", 1), ("B", 2))):
            case Ok(order):
                pass
            case Error(e):
                pytest.fail(str(e))

        match await service.cancel(order.id, None, customer):
            case Ok(cancelled):
                assert cancelled.status == OrderStatus.CANCELLED
            case Error(e):
                pytest.fail(str(e))

        assert catalog.snapshot("A").stock == 3
        assert catalog.snapshot("B").stock == 4


class TestRefund:
    async def test_refund_exceeding_total_rejected(self, service, place, pay, admin, order_store):
        order = await place(("P2", 2), ("P1", 1))
        await pay(order.id)
        assert order.total_price == Decimal("54.25")

        expect_error(await service.refund(order.id, Decimal("75.00"), "broken", admin), ErrorKind.INVALID_AMOUNT)

        assert order_store.snapshot(order.id).status == OrderStatus.PROCESSING

    async def test_refund_goes_through_gateway_first(self, service, place, pay, admin, gateway, catalog):
        order = await place(("P1", 2))
        await pay(order.id, "pi_123")

        match await service.refund(order.id, Decimal("10.50"), "damaged", admin):
            case Ok(refunded):
                assert refunded.status == OrderStatus.REFUNDED
                assert refunded.refund_amount == Decimal("10.50")
                assert refunded.refund_reason == "damaged"
            case Error(e):
                pytest.fail(str(e))

        assert gateway.refunds == [("pi_123", 1050, "damaged")]
        assert catalog.snapshot("P1").stock == 3

    async def test_gateway_failure_keeps_status(self, service, place, pay, admin, gateway, order_store):
        order = await place(("P1", 1))
        await pay(order.id)
        gateway.fail_with = OrderErrors.payment_processor("card network down")

        expect_error(await service.refund(order.id, Decimal("5.00"), "damaged", admin), ErrorKind.PAYMENT_PROCESSOR)

        stored = order_store.snapshot(order.id)
        assert stored.status == OrderStatus.PROCESSING
        assert stored.refund_amount is None

    async def test_unpaid_order_cannot_be_refunded(self, service, place, admin):
        order = await place(("P1", 1))

        expect_error(await service.refund(order.id, Decimal("1.00"), "oops", admin), ErrorKind.INVALID_TRANSITION)

    async def test_second_refund_rejected(self, service, place, pay, admin, gateway):
        order = await place(("P1", 1))
        await pay(order.id)
        await service.refund(order.id, Decimal("1.00"), "first", admin)

        expect_error(await service.refund(order.id, Decimal("1.00"), "again", admin), ErrorKind.INVALID_TRANSITION)
        assert len(gateway.refunds) == 1

    async def test_reason_required(self, service, place, pay, admin):
        order = await place(("P1", 1))
        await pay(order.id)

        expect_error(await service.refund(order.id, Decimal("1.00"), "  ", admin), ErrorKind.VALIDATION)

    async def test_non_positive_amount(self, service, place, pay, admin):
        order = await place(("P1", 1))
        await pay(order.id)

        expect_error(await service.refund(order.id, Decimal("0"), "why", admin), ErrorKind.INVALID_AMOUNT)

    async def test_customers_cannot_refund(self, service, place, pay, customer):
        order = await place(("P1", 1))
        await pay(order.id)

        expect_error(await service.refund(order.id, Decimal("1.00"), "please", customer), ErrorKind.FORBIDDEN)

    async def test_paid_without_gateway_id_refunds_locally(self, service, place, admin, gateway, clock):
        order = await place(("P1", 1))
        await service.process_payment(order.id, PaymentResult(id="", status="paid", update_time=clock()))

        assert isinstance(await service.refund(order.id, Decimal("1.00"), "cash back", admin), Ok)
        assert gateway.refunds == []


class TestQueries:
    async def test_owner_and_admin_can_read(self, service, place, customer, admin, stranger):
        order = await place(("P1", 1))

        assert isinstance(await service.get(order.id, customer), Ok)
        assert isinstance(await service.get(order.id, admin), Ok)
        expect_error(await service.get(order.id, stranger), ErrorKind.FORBIDDEN)

    async def test_missing_order(self, service, customer):
        error = expect_error(await service.get("missing", customer), ErrorKind.NOT_FOUND)

        assert error.message == "Order with ID missing not found"

    async def test_list_is_newest_first_and_paged(self, service, place, clock):
        ids = []
        for _ in range(3):
            ids.append((await place(("P1", 1))).id)
            clock.advance(minutes=1)
        await place(("P3", 1), user_id="someone-else")

        match await service.list_for_user("u1", page=1, limit=2):
            case Ok(page):
                assert [o.id for o in page.orders] == [ids[2], ids[1]]
                assert page.total == 3
                assert page.pages == 2
            case Error(e):
                pytest.fail(str(e))

        match await service.list_for_user("u1", page=2, limit=2):
            case Ok(page):
                assert [o.id for o in page.orders] == [ids[0]]
            case Error(e):
                pytest.fail(str(e))

    async def test_paging_limits(self, service):
        error = expect_error(await service.list_for_user("u1", page=0, limit=51), ErrorKind.VALIDATION)

        assert {f.field for f in error.fields} == {"page", "limit"}
