"""Primitives: exceptions and lock identifiers."""

from __future__ import annotations

from .exceptions import (
    AccountMismatchError,
    AllegroSyncError,
    ConcurrencyError,
    CredentialUnavailableError,
    DependencyError,
    DependencyNotFoundError,
    DuplicateEventError,
    EventAlreadyProcessedError,
    EventError,
    EventNotFoundError,
    HandlerFailureError,
    LockAcquisitionError,
    ManualReviewRequiredError,
    PersistenceError,
    RemoteError,
    RemoteNotFoundError,
    RemoteRejectedError,
    RemoteUnreachableError,
    SyncRunInProgressError,
    UnknownEventTypeError,
)
from .locking import ResourceIdentifier

__all__ = [
    "AccountMismatchError",
    "AllegroSyncError",
    "ConcurrencyError",
    "CredentialUnavailableError",
    "DependencyError",
    "DependencyNotFoundError",
    "DuplicateEventError",
    "EventAlreadyProcessedError",
    "EventError",
    "EventNotFoundError",
    "HandlerFailureError",
    "LockAcquisitionError",
    "ManualReviewRequiredError",
    "PersistenceError",
    "RemoteError",
    "RemoteNotFoundError",
    "RemoteRejectedError",
    "RemoteUnreachableError",
    "ResourceIdentifier",
    "SyncRunInProgressError",
    "UnknownEventTypeError",
]
