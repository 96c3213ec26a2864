"""Tests for ProducerSyncService."""

from __future__ import annotations

import asyncio

import pytest
from conftest import ACCOUNT_ID

from allegro_sync.adapters.memory import FakeMarketplaceClient, StaticCredentialProvider
from allegro_sync.dependencies import ProducerSyncService
from allegro_sync.ports import AccountCredential, SyncStore
from allegro_sync.primitives import (
    AccountMismatchError,
    CredentialUnavailableError,
    DependencyNotFoundError,
)

PRODUCER = {
    "id": "P1",
    "name": "ACME Sp. z o.o.",
    "contact": {"email": "contact@acme.example", "phone": "+48 123"},
    "address": {"city": "Warszawa"},
}


class TestEnsureExists:
    @pytest.mark.asyncio
    async def test_fetches_and_stores_missing_producer(
        self,
        store: SyncStore,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)

        local_id = await producers.ensure_exists(ACCOUNT_ID, "P1")

        stored = await store.producers.get_by_remote_id(ACCOUNT_ID, "P1")
        assert stored is not None
        assert stored.id == local_id
        assert stored.name == "ACME Sp. z o.o."
        assert stored.email == "contact@acme.example"
        assert stored.address == {"city": "Warszawa"}
        assert marketplace.calls_to("get_responsible_producer") == [(ACCOUNT_ID, "P1")]

    @pytest.mark.asyncio
    async def test_known_producer_is_not_fetched_again(
        self,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)

        first = await producers.ensure_exists(ACCOUNT_ID, "P1")
        second = await producers.ensure_exists(ACCOUNT_ID, "P1")

        assert first == second
        assert len(marketplace.calls_to("get_responsible_producer")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_converge_on_one_row(
        self,
        store: SyncStore,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)

        ids = await asyncio.gather(
            *(producers.ensure_exists(ACCOUNT_ID, "P1") for _ in range(5))
        )

        assert len(set(ids)) == 1
        assert len(await store.producers.list_for_account(ACCOUNT_ID)) == 1

    @pytest.mark.asyncio
    async def test_unknown_producer(self, producers: ProducerSyncService) -> None:
        with pytest.raises(DependencyNotFoundError) as exc_info:
            await producers.ensure_exists(ACCOUNT_ID, "missing")
        assert exc_info.value.remote_id == "missing"
        assert exc_info.value.account_id == ACCOUNT_ID

    @pytest.mark.asyncio
    async def test_user_mismatch(
        self,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)

        with pytest.raises(AccountMismatchError):
            await producers.ensure_exists(ACCOUNT_ID, "P1", user_id="someone-else")

        assert marketplace.calls_to("get_responsible_producer") == []

    @pytest.mark.asyncio
    async def test_credential_of_another_account(
        self,
        store: SyncStore,
        marketplace: FakeMarketplaceClient,
    ) -> None:
        credentials = StaticCredentialProvider(
            {"acc-2": AccountCredential("acc-9", "token-9")}
        )
        service = ProducerSyncService(store.producers, marketplace, credentials)

        with pytest.raises(AccountMismatchError) as exc_info:
            await service.ensure_exists("acc-2", "P1")
        assert exc_info.value.account_id == "acc-2"

    @pytest.mark.asyncio
    async def test_missing_credential(self, producers: ProducerSyncService) -> None:
        with pytest.raises(CredentialUnavailableError):
            await producers.ensure_exists("no-such-account", "P1")

    @pytest.mark.asyncio
    async def test_producers_are_scoped_per_account(
        self,
        store: SyncStore,
        marketplace: FakeMarketplaceClient,
        credentials: StaticCredentialProvider,
        producers: ProducerSyncService,
    ) -> None:
        credentials.register("acc-2", AccountCredential("acc-2", "token-2"))
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)
        marketplace.add_producer("acc-2", PRODUCER)

        first = await producers.ensure_exists(ACCOUNT_ID, "P1")
        second = await producers.ensure_exists("acc-2", "P1")

        assert first != second


class TestSyncProducersForAccount:
    @pytest.mark.asyncio
    async def test_summary(
        self,
        store: SyncStore,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)
        marketplace.add_producer(ACCOUNT_ID, {"id": "P2", "companyName": "Beta"})
        marketplace.add_producer("acc-2", {"id": "P3", "name": "Other"})

        summary = await producers.sync_producers_for_account(ACCOUNT_ID)

        assert (summary.total, summary.synced, summary.errors) == (2, 2, 0)
        stored = await store.producers.list_for_account(ACCOUNT_ID)
        assert sorted(p.remote_id for p in stored) == ["P1", "P2"]

    @pytest.mark.asyncio
    async def test_resync_keeps_local_ids(
        self,
        store: SyncStore,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)
        local_id = await producers.ensure_exists(ACCOUNT_ID, "P1")
        marketplace.add_producer(ACCOUNT_ID, {**PRODUCER, "name": "ACME Renamed"})

        await producers.sync_producers_for_account(ACCOUNT_ID)

        stored = await store.producers.get_by_remote_id(ACCOUNT_ID, "P1")
        assert stored is not None
        assert stored.id == local_id
        assert stored.name == "ACME Renamed"

    @pytest.mark.asyncio
    async def test_malformed_producer_is_counted_as_error(
        self,
        marketplace: FakeMarketplaceClient,
        producers: ProducerSyncService,
    ) -> None:
        marketplace.add_producer(ACCOUNT_ID, PRODUCER)
        # Stored under a key, but the payload itself carries no id.
        marketplace.producers[(ACCOUNT_ID, "broken")] = {"name": "No id"}

        summary = await producers.sync_producers_for_account(ACCOUNT_ID)

        assert (summary.total, summary.synced, summary.errors) == (2, 1, 1)
