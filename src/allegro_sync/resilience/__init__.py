"""Resilience: bounded retries for outbound calls."""

from __future__ import annotations

from .retry import RetryExecutor, RetryPolicy

__all__ = ["RetryExecutor", "RetryPolicy"]
