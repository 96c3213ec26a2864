"""Tests for the event taxonomy, id synthesis and payload normalisation."""

from __future__ import annotations

import pytest

from allegro_sync.domain import (
    EventStream,
    map_allegro_event_type,
    native_event_id,
    synthesize_event_id,
)
from allegro_sync.domain.event_types import SYNTHETIC_ID_PREFIX
from allegro_sync.events import normalise_event


class TestEventTypeMapping:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("OFFER_CREATED", "offer.created"),
            ("OFFER_UPDATED", "offer.updated"),
            ("OFFER_PRICE_CHANGED", "offer.updated"),
            ("OFFER_ENDED", "offer.ended"),
            ("OFFER_STOCK_CHANGED", "inventory.updated"),
            ("BOUGHT", "order.created"),
            ("ORDER_CREATED", "order.created"),
            ("READY_FOR_PROCESSING", "order.updated"),
            ("BUYER_CANCELLED", "order.updated"),
            ("offer.updated", "offer.updated"),
        ],
    )
    def test_known_types(self, raw: str, expected: str) -> None:
        assert map_allegro_event_type(raw) == expected

    def test_unknown_types_are_lowercased_and_dotted(self) -> None:
        assert map_allegro_event_type("OFFER_BID_PLACED") == "offer.bid.placed"

    def test_missing_type(self) -> None:
        assert map_allegro_event_type(None) == "unknown"


class TestEventIds:
    def test_native_id_wins(self) -> None:
        assert native_event_id({"id": 123}) == "123"
        assert native_event_id({"eventId": "E9"}) == "E9"
        assert native_event_id({"type": "X"}) is None

    def test_synthesized_id_is_deterministic(self) -> None:
        event = {
            "type": "OFFER_UPDATED",
            "occurredAt": "2026-03-01T12:00:00Z",
            "offer": {"id": "O1", "stock": {"available": 2}},
        }
        reordered = {
            "offer": {"stock": {"available": 2}, "id": "O1"},
            "occurredAt": "2026-03-01T12:00:00Z",
            "type": "OFFER_UPDATED",
        }
        first = synthesize_event_id(event)
        assert first.startswith(SYNTHETIC_ID_PREFIX)
        assert first == synthesize_event_id(reordered)

    def test_synthesized_id_depends_on_content(self) -> None:
        base = {"type": "OFFER_UPDATED", "offer": {"id": "O1"}, "occurredAt": "t1"}
        assert synthesize_event_id(base) != synthesize_event_id(
            {**base, "occurredAt": "t2"}
        )
        assert synthesize_event_id(base) != synthesize_event_id(
            {**base, "offer": {"id": "O2"}}
        )


class TestNormaliseEvent:
    def test_offer_event(self) -> None:
        raw = {"id": "E1", "type": "OFFER_STOCK_CHANGED", "offer": {"id": "O1"}}
        event = normalise_event(EventStream.OFFERS, raw)
        assert event.event_id == "E1"
        assert event.event_type == "inventory.updated"
        assert event.payload == raw

    def test_order_event_takes_order_id_from_checkout_form(self) -> None:
        raw = {
            "id": "E7",
            "type": "ORDER_CANCELLED",
            "order": {"checkoutForm": {"id": "R1"}, "status": "CANCELLED"},
        }
        event = normalise_event(EventStream.ORDERS, raw)
        assert event.event_id == "E7"
        assert event.event_type == "order.updated"
        assert event.payload["order"]["id"] == "R1"

    def test_bare_order_is_wrapped_with_synthesized_id(self) -> None:
        raw = {"id": "R1", "status": "PAID"}
        event = normalise_event(EventStream.ORDERS, raw)
        assert event.payload == {"order": {"id": "R1", "status": "PAID"}}
        assert event.event_type == "order.updated"
        assert event.event_id.startswith(SYNTHETIC_ID_PREFIX)
        assert event.event_id == normalise_event(EventStream.ORDERS, dict(raw)).event_id

    def test_order_event_without_type_defaults_to_updated(self) -> None:
        raw = {"id": "E8", "order": {"id": "R2"}}
        assert normalise_event(EventStream.ORDERS, raw).event_type == "order.updated"
