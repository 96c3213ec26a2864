"""Tests for settings and engine composition."""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import ACCOUNT_ID, ADMIN_EMAIL, seed_linked_offer

from allegro_sync.adapters.http import AllegroHttpClient, HttpNotificationSender
from allegro_sync.adapters.memory import (
    FakeMarketplaceClient,
    InMemorySender,
    StaticCredentialProvider,
    create_memory_store,
)
from allegro_sync.config import SyncSettings
from allegro_sync.conflict import ConflictStrategy
from allegro_sync.domain import EventStream, Product
from allegro_sync.engine import build_engine, open_sqlalchemy_store
from allegro_sync.ports import NotificationType


def settings(**overrides: object) -> SyncSettings:
    values: dict[str, object] = {
        "notification_email_to": ADMIN_EMAIL,
        "notify_stock_low": True,
        "notify_sync_errors": True,
        "retry_base_delay": 0.0,
        "retry_max_delay": 0.0,
    }
    values.update(overrides)
    return SyncSettings(_env_file=None, **values)  # type: ignore[arg-type]


class TestSettings:
    def test_defaults(self) -> None:
        config = SyncSettings(_env_file=None)
        assert config.conflict_strategy is ConflictStrategy.TIMESTAMP
        assert config.sync_batch_size == 100
        assert config.event_retention_days == 30
        assert config.notify_sync_errors is False

    def test_environment_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ALLEGRO_SYNC_CONFLICT_STRATEGY", "REMOTE_WINS")
        monkeypatch.setenv("ALLEGRO_SYNC_SYNC_BATCH_SIZE", "25")
        monkeypatch.setenv("ALLEGRO_SYNC_NOTIFY_STOCK_LOW", "true")

        config = SyncSettings(_env_file=None)

        assert config.conflict_strategy is ConflictStrategy.REMOTE_WINS
        assert config.sync_batch_size == 25
        assert config.notify_stock_low is True


class TestBuildEngine:
    def test_wiring_follows_settings(
        self,
        credentials: StaticCredentialProvider,
        marketplace: FakeMarketplaceClient,
    ) -> None:
        engine = build_engine(
            settings(conflict_strategy=ConflictStrategy.DB_WINS, sync_batch_size=7),
            store=create_memory_store(),
            credentials=credentials,
            marketplace=marketplace,
        )

        assert engine.allegro_to_db.conflict_strategy is ConflictStrategy.DB_WINS
        assert engine.allegro_to_db.field_level is False
        assert engine.bidirectional.allegro_to_db.field_level is True
        assert engine.bidirectional.db_to_allegro is engine.db_to_allegro
        assert engine.db_to_allegro.batch_size == 7
        assert engine.notifier.admin_email == ADMIN_EMAIL
        assert engine.notifier.notify_stock_low is True
        assert engine.notifier.notify_order_created is False

    def test_http_client_needs_an_account(
        self, credentials: StaticCredentialProvider
    ) -> None:
        with pytest.raises(ValueError, match="allegro_account_id"):
            build_engine(settings(), store=create_memory_store(), credentials=credentials)

    @pytest.mark.asyncio
    async def test_builds_http_client_for_the_account(
        self, credentials: StaticCredentialProvider
    ) -> None:
        async with build_engine(
            settings(allegro_account_id=ACCOUNT_ID, allegro_api_url="https://api.test/"),
            store=create_memory_store(),
            credentials=credentials,
        ) as engine:
            client = engine.ingestion.marketplace
            assert isinstance(client, AllegroHttpClient)
            assert client.account_id == ACCOUNT_ID
            assert client.base_url == "https://api.test"

    @pytest.mark.asyncio
    async def test_closing_the_engine_closes_the_clients_it_built(
        self, credentials: StaticCredentialProvider
    ) -> None:
        engine = build_engine(
            settings(
                allegro_account_id=ACCOUNT_ID,
                notification_service_url="http://notifications.test",
            ),
            store=create_memory_store(),
            credentials=credentials,
        )
        built = list(engine.owned_clients)

        async with engine:
            pass
        await engine.aclose()

        assert {type(c) for c in built} == {AllegroHttpClient, HttpNotificationSender}
        assert all(c._client.is_closed for c in built)
        assert engine.owned_clients == []

    @pytest.mark.asyncio
    async def test_injected_adapters_are_left_open(
        self,
        credentials: StaticCredentialProvider,
        marketplace: FakeMarketplaceClient,
    ) -> None:
        sender = HttpNotificationSender("http://notifications.test")
        async with build_engine(
            settings(notification_service_url="http://ignored.test"),
            store=create_memory_store(),
            credentials=credentials,
            marketplace=marketplace,
            sender=sender,
        ) as engine:
            assert engine.owned_clients == []

        assert sender._client.is_closed is False
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_engine_runs_end_to_end(
        self,
        credentials: StaticCredentialProvider,
        marketplace: FakeMarketplaceClient,
        sender: InMemorySender,
    ) -> None:
        store = create_memory_store()
        engine = build_engine(
            settings(),
            store=store,
            credentials=credentials,
            marketplace=marketplace,
            sender=sender,
        )
        await seed_linked_offer(store, "O1", stock=10, minimum_stock=2)
        marketplace.add_offer({"id": "O1"})
        marketplace.push_event(
            EventStream.OFFERS,
            {"id": "E1", "type": "OFFER_STOCK_CHANGED", "offer": {"id": "O1", "stock": {"available": 1}}},
        )
        await store.products.save(
            Product(code="NEW", name="New", selling_price=Decimal("5.00"))
        )

        polled = await engine.ingestion.poll_events()
        pushed = await engine.db_to_allegro.execute()

        assert polled.processed_count == 1
        assert pushed.failed == 0
        assert len(marketplace.calls_to("create_offer")) == 1
        assert len(sender.of_type(NotificationType.STOCK_LOW)) == 1


class TestOpenSqlalchemyStore:
    @pytest.mark.asyncio
    async def test_creates_schema(self) -> None:
        engine, store = await open_sqlalchemy_store("sqlite+aiosqlite:///:memory:")
        try:
            assert await store.orders.restore_stock("R1", {}) == []
            assert await store.events.last_processed_event_id("allegro.offers") is None
        finally:
            await engine.dispose()
