"""Sync strategies: push, pull and bidirectional reconciliation runs."""

from __future__ import annotations

from .allegro_to_db import AllegroToDbStrategy
from .base import SyncStrategy, classify_error
from .bidirectional import BidirectionalStrategy
from .db_to_allegro import DbToAllegroStrategy, build_offer_payload

__all__ = [
    "AllegroToDbStrategy",
    "BidirectionalStrategy",
    "DbToAllegroStrategy",
    "SyncStrategy",
    "build_offer_payload",
    "classify_error",
]
