"""
Tests for the SQLAlchemy-backed stores against a temporary SQLite file.
"""

import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from kungfu import Ok, Error

from orderflow import db
from orderflow import idempotency as I
from orderflow import saga as S
from orderflow.catalog import Product, ProductStatus, SQLAlchemyCatalog
from orderflow.errors import ErrorKind
from orderflow.orders import OrderService, OrderStatus, SQLAlchemyOrderStore, StatusUpdate, ShippingCarrier


@pytest.fixture
async def database(tmp_path):
    session_factory, engine = await db.create_database(f"sqlite+aiosqlite:///{tmp_path / 'orderflow.db'}")
    yield session_factory
    await engine.dispose()


@pytest.fixture
async def sql_catalog(database) -> SQLAlchemyCatalog:
    catalog = SQLAlchemyCatalog(database)
    for product in (
        Product("P1", "Mug", Decimal("10.00"), stock=5, sku="MUG-1", images=("mug.png",)),
        Product("P2", "Teapot", Decimal("25.00"), stock=3, sale_price=Decimal("20.00"), is_on_sale=True),
        Product("P3", "Spoon", Decimal("2.50"), stock=1),
    ):
        await catalog.add(product)
    return catalog


@pytest.fixture
def sql_service(database, sql_catalog, pricing, gateway, clock) -> OrderService:
    return OrderService(
        sql_catalog,
        SQLAlchemyOrderStore(database),
        S.SQLAlchemyIntentStore(database),
        pricing,
        gateway=gateway,
        clock=clock,
    )


async def stock_of(catalog: SQLAlchemyCatalog, product_id: str) -> Product:
    match await catalog.find(product_id):
        case Ok(product):
            return product
        case Error(e):
            raise AssertionError(str(e))


class TestSQLAlchemyCatalog:
    async def test_round_trip(self, sql_catalog):
        product = await stock_of(sql_catalog, "P2")

        assert product.price == Decimal("25.00")
        assert product.sale_price == Decimal("20.00")
        assert product.effective_price == Decimal("20.00")

    async def test_reserve_and_restore(self, sql_catalog):
        assert isinstance(await sql_catalog.reserve("P1", 2), Ok)
        assert (await stock_of(sql_catalog, "P1")).stock == 3

        assert isinstance(await sql_catalog.restore("P1", 2), Ok)
        assert (await stock_of(sql_catalog, "P1")).stock == 5

    async def test_last_unit_flips_status(self, sql_catalog):
        await sql_catalog.reserve("P3", 1)
        assert (await stock_of(sql_catalog, "P3")).status == ProductStatus.OUT_OF_STOCK

        await sql_catalog.restore("P3", 1)
        assert (await stock_of(sql_catalog, "P3")).status == ProductStatus.ACTIVE

    async def test_insufficient_stock_leaves_row(self, sql_catalog):
        match await sql_catalog.reserve("P3", 2):
            case Error(e):
                assert e.kind == ErrorKind.INSUFFICIENT_STOCK
            case Ok(_):
                pytest.fail("oversold")

        assert (await stock_of(sql_catalog, "P3")).stock == 1

    async def test_missing_product(self, sql_catalog):
        for result in (await sql_catalog.reserve("nope", 1), await sql_catalog.restore("nope", 1)):
            match result:
                case Error(e):
                    assert e.kind == ErrorKind.NOT_FOUND
                case Ok(_):
                    pytest.fail("missing product changed")

    async def test_concurrent_reserves_never_oversell(self, sql_catalog):
        results = await asyncio.gather(*(sql_catalog.reserve("P1", 2) for _ in range(4)))

        assert sum(isinstance(r, Ok) for r in results) == 2
        assert (await stock_of(sql_catalog, "P1")).stock == 1


class TestSQLAlchemyOrders:
    async def test_created_order_reads_back(self, sql_service, command, customer):
        match await sql_service.create(command(("P1", 2), notes="ring twice")):
            case Ok(created):
                pass
            case Error(e):
                pytest.fail(str(e))

        match await sql_service.get(created.id, customer):
            case Ok(loaded):
                assert loaded == created
                assert loaded.total_price == Decimal("27.69")
                assert loaded.order_items[0].image == "mug.png"
            case Error(e):
                pytest.fail(str(e))

    async def test_lifecycle_persists(self, sql_service, sql_catalog, command, admin, clock):
        match await sql_service.create(command(("P2", 1))):
            case Ok(order):
                pass
            case Error(e):
                pytest.fail(str(e))

        clock.advance(hours=1)
        update = StatusUpdate(OrderStatus.SHIPPED, tracking_number="1Z1", shipping_carrier=ShippingCarrier.UPS)
        assert isinstance(await sql_service.update_status(order.id, update, admin), Ok)

        match await sql_service.track("1Z1"):
            case Ok(tracked):
                assert tracked.status == OrderStatus.SHIPPED
                assert tracked.shipping_carrier == ShippingCarrier.UPS
                assert tracked.updated_at == clock()
            case Error(e):
                pytest.fail(str(e))

        assert (await stock_of(sql_catalog, "P2")).stock == 2

    async def test_cancel_restores_rows(self, sql_service, sql_catalog, command, customer):
        match await sql_service.create(command(("P1", 2), ("P3", 1))):
            case Ok(order):
                pass
            case Error(e):
                pytest.fail(str(e))

        assert isinstance(await sql_service.cancel(order.id, "mistake", customer), Ok)

        assert (await stock_of(sql_catalog, "P1")).stock == 5
        assert (await stock_of(sql_catalog, "P3")).stock == 1

    async def test_concurrent_cancels_restore_once(self, sql_service, sql_catalog, command, customer):
        match await sql_service.create(command(("P1", 2))):
            case Ok(order):
                pass
            case Error(e):
                pytest.fail(str(e))
        assert (await stock_of(sql_catalog, "P1")).stock == 3

        results = await asyncio.gather(
            sql_service.cancel(order.id, "double click", customer),
            sql_service.cancel(order.id, "double click", customer),
        )

        assert sum(isinstance(r, Ok) for r in results) == 1
        assert (await stock_of(sql_catalog, "P1")).stock == 5

    async def test_stale_payment_cannot_revive_cancelled_order(self, database, sql_service, command, customer, clock):
        store = SQLAlchemyOrderStore(database)
        match await sql_service.create(command(("P1", 1))):
            case Ok(order):
                pass
            case Error(e):
                pytest.fail(str(e))
        await sql_service.cancel(order.id, None, customer)

        revived = replace(order, status=OrderStatus.PROCESSING, is_paid=True, paid_at=clock())
        match await store.save(revived, OrderStatus.PENDING):
            case Error(e):
                assert e.kind == ErrorKind.INVALID_TRANSITION
            case Ok(_):
                pytest.fail("stale write overwrote a cancelled order")

        match await store.get(order.id):
            case Ok(loaded):
                assert loaded.status == OrderStatus.CANCELLED
                assert not loaded.is_paid
            case Error(e):
                pytest.fail(str(e))

    async def test_paging_newest_first(self, sql_service, command, clock):
        ids = []
        for _ in range(3):
            clock.advance(minutes=1)
            match await sql_service.create(command(("P1", 1))):
                case Ok(order):
                    ids.append(order.id)
                case Error(e):
                    pytest.fail(str(e))

        match await sql_service.list_for_user("u1", page=1, limit=2):
            case Ok(page):
                assert page.total == 3
                assert page.pages == 2
                assert [o.id for o in page.orders] == [ids[2], ids[1]]
            case Error(e):
                pytest.fail(str(e))

    async def test_failed_reservation_is_compensated(self, sql_service, sql_catalog, command):
        match await sql_service.create(command(("P1", 1), ("P3", 2))):
            case Error(e):
                assert e.kind == ErrorKind.INSUFFICIENT_STOCK
            case Ok(_):
                pytest.fail("oversold")

        assert (await stock_of(sql_catalog, "P1")).stock == 5


class TestSQLAlchemyIntents:
    async def test_record_and_sweep(self, database, sql_catalog, clock):
        intents = S.SQLAlchemyIntentStore(database)
        orders = SQLAlchemyOrderStore(database)
        now = clock()
        intent = S.OrderIntent(
            id="intent-1",
            order_id="never-saved",
            user_id="u1",
            lines=(S.IntentLine("P1", 2),),
            created_at=now,
            updated_at=now,
        )
        await intents.insert(intent)
        await sql_catalog.reserve("P1", 2)
        await intents.record_reserved(intent.id, S.IntentLine("P1", 2), now)

        clock.advance(minutes=10)
        match await S.sweep_abandoned_intents(intents, sql_catalog, orders, clock(), timedelta(minutes=5)):
            case Ok(report):
                assert report.abandoned == 1
            case Error(e):
                pytest.fail(str(e))

        assert (await stock_of(sql_catalog, "P1")).stock == 5
        match await intents.get(intent.id):
            case Ok(swept):
                assert swept.state == S.IntentState.ABANDONED
                assert swept.reserved == (S.IntentLine("P1", 2),)
                assert swept.released == (S.IntentLine("P1", 2),)
                assert swept.created_at == now
            case Error(e):
                pytest.fail(str(e))


class TestWebhookEventStore:
    async def test_second_pending_claim_loses(self, database, clock):
        store = db.webhook_event_store(database, clock=clock)

        await store.set_pending("webhook:evt_1", None)
        match await store.set_pending("webhook:evt_1", None):
            case Ok(claimed):
                assert claimed is False
            case Error(e):
                pytest.fail(e.message)

    async def test_run_once_caches_value(self, database, clock):
        store = db.webhook_event_store(database, clock=clock)
        calls = 0

        async def handle():
            nonlocal calls
            calls += 1
            return Ok("payment_recorded")

        await I.run_once(store, "webhook:evt_1", handle)
        match await I.run_once(store, "webhook:evt_1", handle):
            case Ok(done):
                assert done.from_cache
                assert done.value == "payment_recorded"
            case Error(e):
                pytest.fail(e.message)
        assert calls == 1

    async def test_expired_record_can_be_claimed_again(self, database, clock):
        store = db.webhook_event_store(database, clock=clock)

        await store.set_pending("webhook:evt_1", timedelta(hours=1))
        clock.advance(hours=2)

        match await store.set_pending("webhook:evt_1", timedelta(hours=1)):
            case Ok(claimed):
                assert claimed is True
            case Error(e):
                pytest.fail(e.message)
