"""Tests for the SQLAlchemy store against an in-memory SQLite database."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import create_async_engine

from allegro_sync.adapters.memory import (
    FakeMarketplaceClient,
    InMemoryLockStrategy,
    StaticCredentialProvider,
)
from allegro_sync.adapters.sqlalchemy import (
    SQLAlchemyProducerRepository,
    create_schema,
    create_session_factory,
    create_sqlalchemy_store,
)
from allegro_sync.concurrency import EntityLocks
from allegro_sync.dependencies import ProducerSyncService
from allegro_sync.domain import (
    EventFilter,
    EventStream,
    Offer,
    Order,
    OrderLineItem,
    Producer,
    Product,
    SyncEvent,
    SyncSource,
    SyncStatus,
)
from allegro_sync.events import EventDispatcher, EventIngestionService
from allegro_sync.handlers import InventoryUpdatedHandler, OrderUpdatedHandler
from allegro_sync.ports import AccountCredential
from allegro_sync.primitives import DuplicateEventError
from allegro_sync.utils import utcnow


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def sql_store(engine):
    return create_sqlalchemy_store(create_session_factory(engine))


def event(event_id: str, *, source: str = "allegro.offers", **fields) -> SyncEvent:
    return SyncEvent(
        event_id=event_id,
        event_type=fields.pop("event_type", "inventory.updated"),
        source=source,
        **fields,
    )


class TestSyncEventRepository:
    @pytest.mark.asyncio
    async def test_add_assigns_increasing_sequence(self, sql_store) -> None:
        first = await sql_store.events.add(event("E1", payload={"offer": {"id": "O1"}}))
        second = await sql_store.events.add(event("E2"))

        assert first.sequence is not None and second.sequence is not None
        assert second.sequence > first.sequence
        loaded = await sql_store.events.get("E1")
        assert loaded is not None
        assert loaded.payload == {"offer": {"id": "O1"}}
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_duplicate_event_id_is_rejected(self, sql_store) -> None:
        await sql_store.events.add(event("E1"))

        with pytest.raises(DuplicateEventError) as exc_info:
            await sql_store.events.add(event("E1", event_type="offer.updated"))

        assert exc_info.value.event_id == "E1"
        _, total = await sql_store.events.search(EventFilter())
        assert total == 1

    @pytest.mark.asyncio
    async def test_save_records_outcome(self, sql_store) -> None:
        stored = await sql_store.events.add(event("E1"))
        stored.processing_error = "boom"
        stored.retry_count = 1
        await sql_store.events.save(stored)

        loaded = await sql_store.events.get("E1")
        assert loaded is not None
        assert (loaded.processed, loaded.retry_count) == (False, 1)
        assert loaded.processing_error == "boom"

    @pytest.mark.asyncio
    async def test_last_processed_event_follows_sequence(self, sql_store) -> None:
        for event_id in ("E1", "E2", "E3"):
            await sql_store.events.add(event(event_id))
        await sql_store.events.add(event("OE1", source="allegro.orders", processed=True))
        for event_id in ("E1", "E2"):
            stored = await sql_store.events.get(event_id)
            assert stored is not None
            stored.processed = True
            stored.processed_at = utcnow()
            await sql_store.events.save(stored)

        assert await sql_store.events.last_processed_event_id("allegro.offers") == "E2"
        assert await sql_store.events.last_processed_event_id("allegro.orders") == "OE1"
        assert await sql_store.events.last_processed_event_id("other") is None

    @pytest.mark.asyncio
    async def test_search_and_purge(self, sql_store) -> None:
        old = utcnow() - timedelta(days=40)
        await sql_store.events.add(event("E1", processed=True, created_at=old))
        await sql_store.events.add(event("E2", processed=True, event_type="offer.ended"))
        await sql_store.events.add(event("E3", created_at=old))

        items, total = await sql_store.events.search(EventFilter(processed=True, limit=1))
        assert total == 2
        assert [e.event_id for e in items] == ["E2"]

        assert await sql_store.events.purge_processed(utcnow() - timedelta(days=30)) == 1
        assert await sql_store.events.get("E1") is None
        assert await sql_store.events.get("E3") is not None


class TestEntityRepositories:
    @pytest.mark.asyncio
    async def test_pending_push_selection(self, sql_store) -> None:
        now = utcnow()
        changed = Product(code="A", name="Changed", selling_price=Decimal("1.50"))
        synced = Product(code="B", name="Synced")
        synced.mark_synced(SyncSource.LOCAL, at=now + timedelta(seconds=1))
        inactive = Product(code="C", name="Inactive", active=False)
        stale = Product(code="D", name="Stale", updated_at=now - timedelta(days=3))
        for product in (changed, synced, inactive, stale):
            await sql_store.products.save(product)

        pending = await sql_store.products.list_pending_push(now - timedelta(days=1), 10)

        assert [p.id for p in pending] == [changed.id]
        assert pending[0].selling_price == Decimal("1.50")

    @pytest.mark.asyncio
    async def test_offer_lookup_and_linked_order(self, sql_store) -> None:
        product = Product(code="A", name="A")
        await sql_store.products.save(product)
        never = Offer(allegro_offer_id="O1", product_id=product.id, price=Decimal("9.99"))
        recent = Offer(allegro_offer_id="O2")
        recent.mark_synced(SyncSource.ALLEGRO)
        unlinked = Offer()
        for offer in (recent, never, unlinked):
            await sql_store.offers.save(offer)

        by_remote = await sql_store.offers.get_by_allegro_id("O1")
        by_product = await sql_store.offers.get_by_product_id(product.id)
        assert by_remote is not None and by_product is not None
        assert by_remote.id == by_product.id == never.id
        assert by_remote.price == Decimal("9.99")

        linked = await sql_store.offers.list_linked(10)
        assert [o.allegro_offer_id for o in linked] == ["O1", "O2"]

        never.stock_quantity = 4
        never.mark_error("rejected")
        await sql_store.offers.save(never)
        reloaded = await sql_store.offers.get(never.id)
        assert reloaded is not None
        assert reloaded.stock_quantity == 4
        assert reloaded.sync_status is SyncStatus.ERROR

    @pytest.mark.asyncio
    async def test_order_line_items_round_trip(self, sql_store) -> None:
        order = Order(
            allegro_order_id="R1",
            total_amount=Decimal("30.00"),
            line_items=[OrderLineItem(offer_id="O1", quantity=3, price=Decimal("10.00"))],
        )
        await sql_store.orders.save(order)

        loaded = await sql_store.orders.get_by_allegro_id("R1")
        assert loaded is not None
        assert loaded.line_items == [
            OrderLineItem(offer_id="O1", quantity=3, price=Decimal("10.00"))
        ]
        assert loaded.total_amount == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_restore_stock_applies_once_per_order(self, sql_store) -> None:
        product = Product(code="A", name="A", stock_quantity=5)
        await sql_store.products.save(product)
        await sql_store.offers.save(
            Offer(allegro_offer_id="O1", product_id=product.id, stock_quantity=5)
        )

        first = await sql_store.orders.restore_stock("R1", {"O1": 3, "GONE": 1})
        second = await sql_store.orders.restore_stock("R1", {"O1": 3})
        other = await sql_store.orders.restore_stock("R2", {})

        assert first == ["O1"]
        assert second is None
        assert other == []
        offer = await sql_store.offers.get_by_allegro_id("O1")
        stored = await sql_store.products.get(product.id)
        assert offer is not None and stored is not None
        assert offer.stock_quantity == 8
        assert stored.stock_quantity == 8

    @pytest.mark.asyncio
    async def test_restore_stock_rolls_back_as_a_whole(self, engine, sql_store) -> None:
        product = Product(code="A", name="A", stock_quantity=5)
        await sql_store.products.save(product)
        await sql_store.offers.save(
            Offer(allegro_offer_id="O1", product_id=product.id, stock_quantity=5)
        )

        def fail_product_update(conn, cursor, statement, *args):
            if statement.lstrip().upper().startswith("UPDATE PRODUCTS"):
                raise RuntimeError("products table unavailable")

        sa_event.listen(engine.sync_engine, "before_cursor_execute", fail_product_update)
        try:
            with pytest.raises(RuntimeError):
                await sql_store.orders.restore_stock("R1", {"O1": 3})
        finally:
            sa_event.remove(
                engine.sync_engine, "before_cursor_execute", fail_product_update
            )

        offer = await sql_store.offers.get_by_allegro_id("O1")
        assert offer is not None
        assert offer.stock_quantity == 5

        assert await sql_store.orders.restore_stock("R1", {"O1": 3}) == ["O1"]
        assert await sql_store.orders.restore_stock("R1", {"O1": 3}) is None
        offer = await sql_store.offers.get_by_allegro_id("O1")
        stored = await sql_store.products.get(product.id)
        assert offer is not None and stored is not None
        assert offer.stock_quantity == 8
        assert stored.stock_quantity == 8

    @pytest.mark.asyncio
    async def test_producer_upsert_keeps_local_id(self, sql_store) -> None:
        first = await sql_store.producers.upsert(
            Producer(account_id="acc-1", remote_id="P1", name="ACME")
        )
        second = await sql_store.producers.upsert(
            Producer(account_id="acc-1", remote_id="P1", name="ACME Renamed")
        )
        other = await sql_store.producers.upsert(
            Producer(account_id="acc-2", remote_id="P1", name="ACME")
        )

        assert second.id == first.id
        assert second.name == "ACME Renamed"
        assert other.id != first.id
        assert [p.id for p in await sql_store.producers.list_for_account("acc-1")] == [
            first.id
        ]

    @pytest.mark.asyncio
    async def test_producer_upsert_survives_concurrent_insert(
        self, sql_store, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        repo = sql_store.producers
        winner = await repo.upsert(
            Producer(account_id="acc-1", remote_id="P1", name="ACME")
        )
        original_find = SQLAlchemyProducerRepository._find
        calls = 0

        async def find_missing_once(session, account_id, remote_id):
            # the first lookup misses the row, as if it was inserted meanwhile
            nonlocal calls
            calls += 1
            if calls == 1:
                return None
            return await original_find(session, account_id, remote_id)

        monkeypatch.setattr(
            SQLAlchemyProducerRepository, "_find", staticmethod(find_missing_once)
        )

        loser = await repo.upsert(
            Producer(account_id="acc-1", remote_id="P1", name="ACME Renamed")
        )

        assert calls == 2
        assert loser.id == winner.id
        assert loser.name == "ACME Renamed"
        rows = await repo.list_for_account("acc-1")
        assert [p.id for p in rows] == [winner.id]

    @pytest.mark.asyncio
    async def test_ensure_exists_converges_on_one_row(
        self, sql_store, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        marketplace = FakeMarketplaceClient()
        marketplace.add_producer("acc-1", {"id": "P1", "name": "ACME"})
        credentials = StaticCredentialProvider(
            {"acc-1": AccountCredential(account_id="acc-1", access_token="t")}
        )
        service = ProducerSyncService(sql_store.producers, marketplace, credentials)
        winner = await sql_store.producers.upsert(
            Producer(account_id="acc-1", remote_id="P1", name="ACME")
        )
        original_find = SQLAlchemyProducerRepository._find
        calls = 0

        async def find_missing_twice(session, account_id, remote_id):
            # the existence check and the first insert attempt both miss the
            # row another caller has just stored
            nonlocal calls
            calls += 1
            if calls <= 2:
                return None
            return await original_find(session, account_id, remote_id)

        monkeypatch.setattr(
            SQLAlchemyProducerRepository, "_find", staticmethod(find_missing_twice)
        )

        local_id = await service.ensure_exists("acc-1", "P1")

        assert local_id == winner.id
        assert len(await sql_store.producers.list_for_account("acc-1")) == 1
        assert marketplace.calls_to("get_responsible_producer") == [("acc-1", "P1")]


class TestIngestionOnSQLAlchemy:
    @pytest.mark.asyncio
    async def test_stock_event_and_cancellation(self, sql_store) -> None:
        locks = EntityLocks(InMemoryLockStrategy(), timeout=2.0)
        marketplace = FakeMarketplaceClient()
        dispatcher = EventDispatcher(
            [InventoryUpdatedHandler(sql_store, locks), OrderUpdatedHandler(sql_store, locks)]
        )
        ingestion = EventIngestionService(
            sql_store, marketplace, dispatcher, streams=(EventStream.OFFERS,)
        )
        product = Product(code="A", name="A", stock_quantity=12)
        await sql_store.products.save(product)
        await sql_store.offers.save(
            Offer(allegro_offer_id="O1", product_id=product.id, stock_quantity=12)
        )
        marketplace.push_event(
            EventStream.OFFERS,
            {"id": "E1", "type": "OFFER_STOCK_CHANGED", "offer": {"id": "O1", "stock": {"available": 5}}},
        )

        result = await ingestion.poll_events()
        again = await ingestion.poll_events()

        assert result.processed_count == 1
        assert again.processed_count == 0
        assert await ingestion.cursors.get(EventStream.OFFERS) == "E1"

        cancellation = {
            "order": {
                "id": "R1",
                "status": "CANCELLED",
                "lineItems": [{"offerId": "O1", "quantity": 3}],
            }
        }
        await dispatcher.dispatch("order.updated", cancellation)
        await dispatcher.dispatch("order.updated", cancellation)

        stored = await sql_store.products.get(product.id)
        offer = await sql_store.offers.get_by_allegro_id("O1")
        assert stored is not None and offer is not None
        assert stored.stock_quantity == 8
        assert offer.stock_quantity == 8
