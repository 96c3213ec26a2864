"""Conflict resolution between local and remote copies of a record."""

from __future__ import annotations

from .resolution import (
    DEFAULT_FIELD_POLICY,
    FIELD_POLICIES,
    ConflictResolver,
    ConflictStrategy,
    FieldPolicy,
    Resolution,
)

__all__ = [
    "DEFAULT_FIELD_POLICY",
    "FIELD_POLICIES",
    "ConflictResolver",
    "ConflictStrategy",
    "FieldPolicy",
    "Resolution",
]
