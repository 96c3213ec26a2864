"""FakeMarketplaceClient — scripted, in-memory stand-in for the Allegro API."""

from __future__ import annotations

import copy
import itertools
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from ...domain.event_types import EventStream, native_event_id
from ...ports.marketplace import IMarketplaceClient, MarketplaceEventPage
from ...primitives.exceptions import RemoteNotFoundError

if TYPE_CHECKING:
    from ...ports.credentials import AccountCredential

logger = logging.getLogger("allegro_sync.http")


class FakeMarketplaceClient(IMarketplaceClient):
    """
    Test double (Fake) holding offers, orders, producers and event streams.

    Failures are scripted per operation and key with :meth:`fail`; every call
    is recorded in ``calls`` for assertions.
    """

    def __init__(self) -> None:
        self.streams: dict[EventStream, list[dict[str, Any]]] = defaultdict(list)
        self.offers: dict[str, dict[str, Any]] = {}
        self.orders: dict[str, dict[str, Any]] = {}
        self.producers: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self._failures: dict[tuple[str, str], list[BaseException]] = defaultdict(list)
        self._offer_ids = itertools.count(1)

    # ── Scripting ─────────────────────────────────────────────────────

    def push_event(self, stream: EventStream, event: dict[str, Any]) -> None:
        self.streams[stream].append(copy.deepcopy(event))

    def add_offer(self, offer: dict[str, Any]) -> None:
        self.offers[str(offer["id"])] = copy.deepcopy(offer)

    def add_producer(self, account_id: str, producer: dict[str, Any]) -> None:
        self.producers[(account_id, str(producer["id"]))] = copy.deepcopy(producer)

    def fail(self, operation: str, key: str, *errors: BaseException) -> None:
        """Queue errors raised by the next calls of *operation* on *key*.

        Use ``key="*"`` to match any key.
        """
        self._failures[(operation, key)].extend(errors)

    def _maybe_fail(self, operation: str, key: str) -> None:
        for candidate in ((operation, key), (operation, "*")):
            queued = self._failures.get(candidate)
            if queued:
                error = queued.pop(0)
                logger.debug("Scripted %s failure for %s: %r", operation, key, error)
                raise error

    def calls_to(self, operation: str) -> list[Any]:
        return [args for op, args in self.calls if op == operation]

    # ── IMarketplaceClient ────────────────────────────────────────────

    async def fetch_events(
        self,
        stream: EventStream,
        *,
        from_event_id: str | None = None,
        limit: int = 100,
    ) -> MarketplaceEventPage:
        self.calls.append(("fetch_events", (stream, from_event_id, limit)))
        self._maybe_fail("fetch_events", stream.value)
        events = self.streams[stream]
        start = 0
        if from_event_id is not None:
            # Synthesized cursors are unknown to the remote side; those streams
            # are replayed from the start and deduplicated by ingestion.
            for index, event in enumerate(events):
                if native_event_id(event) == from_event_id:
                    start = index + 1
                    break
        page = [copy.deepcopy(e) for e in events[start : start + limit]]
        last = native_event_id(page[-1]) if page else from_event_id
        return MarketplaceEventPage(events=page, last_event_id=last)

    async def get_offer(self, offer_id: str) -> dict[str, Any]:
        self.calls.append(("get_offer", offer_id))
        self._maybe_fail("get_offer", offer_id)
        if offer_id not in self.offers:
            raise RemoteNotFoundError(f"Offer {offer_id} not found", status_code=404)
        return copy.deepcopy(self.offers[offer_id])

    async def create_offer(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create_offer", copy.deepcopy(payload)))
        self._maybe_fail("create_offer", str(payload.get("external", {}).get("id", "")))
        offer_id = f"fake-{next(self._offer_ids)}"
        offer = {**copy.deepcopy(payload), "id": offer_id}
        self.offers[offer_id] = offer
        return copy.deepcopy(offer)

    async def update_offer(
        self, offer_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("update_offer", (offer_id, copy.deepcopy(payload))))
        self._maybe_fail("update_offer", offer_id)
        if offer_id not in self.offers:
            raise RemoteNotFoundError(f"Offer {offer_id} not found", status_code=404)
        self.offers[offer_id].update(copy.deepcopy(payload))
        return copy.deepcopy(self.offers[offer_id])

    async def get_order(self, order_id: str) -> dict[str, Any]:
        self.calls.append(("get_order", order_id))
        self._maybe_fail("get_order", order_id)
        if order_id not in self.orders:
            raise RemoteNotFoundError(f"Order {order_id} not found", status_code=404)
        return copy.deepcopy(self.orders[order_id])

    async def get_responsible_producer(
        self, credential: AccountCredential, producer_id: str
    ) -> dict[str, Any]:
        self.calls.append(("get_responsible_producer", (credential.account_id, producer_id)))
        self._maybe_fail("get_responsible_producer", producer_id)
        producer = self.producers.get((credential.account_id, producer_id))
        if producer is None:
            raise RemoteNotFoundError(
                f"Responsible producer {producer_id} not found", status_code=404
            )
        return copy.deepcopy(producer)

    async def list_responsible_producers(
        self, credential: AccountCredential
    ) -> list[dict[str, Any]]:
        self.calls.append(("list_responsible_producers", credential.account_id))
        self._maybe_fail("list_responsible_producers", credential.account_id)
        return [
            copy.deepcopy(p)
            for (account_id, _), p in self.producers.items()
            if account_id == credential.account_id
        ]
