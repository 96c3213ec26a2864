"""Common utility functions and helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any) -> datetime | None:
    """Parse ISO-8601 strings (``Z`` suffix allowed) or pass datetimes through."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str) and value:
        try:
            return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def to_decimal(value: Any) -> Decimal | None:
    """Convert marketplace amounts (usually strings) to ``Decimal``."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def dig(data: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts, returning *default* on the first missing key."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current
