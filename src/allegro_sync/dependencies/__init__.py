"""Referential dependencies that must exist before records are exported."""

from __future__ import annotations

from .producers import ProducerSyncService

__all__ = ["ProducerSyncService"]
