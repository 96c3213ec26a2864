"""httpx adapters for the Allegro REST API and the notification service."""

from __future__ import annotations

from .marketplace import ALLEGRO_MEDIA_TYPE, AllegroHttpClient, raise_for_status
from .notifications import HttpNotificationSender

__all__ = [
    "ALLEGRO_MEDIA_TYPE",
    "AllegroHttpClient",
    "HttpNotificationSender",
    "raise_for_status",
]
