"""Exception hierarchy for the Allegro synchronization engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .locking import ResourceIdentifier


class AllegroSyncError(Exception):
    """Root exception for the entire sync engine."""


# ── Event ingestion ──────────────────────────────────────────────────


class EventError(AllegroSyncError):
    """Base class for event ingestion and dispatch errors."""


class DuplicateEventError(EventError):
    """Raised when an event with the same id has already been stored.

    Ingestion treats this as a no-op, never as a failure.
    """

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event {event_id!r} already ingested")


class UnknownEventTypeError(EventError):
    """Raised when no handler is registered for an internal event type."""

    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(f"No handler registered for event type {event_type!r}")


class HandlerFailureError(EventError):
    """A handler raised while applying an event payload."""

    def __init__(self, event_id: str, event_type: str, reason: str) -> None:
        self.event_id = event_id
        self.event_type = event_type
        self.reason = reason
        super().__init__(
            f"Handler for {event_type!r} failed on event {event_id!r}: {reason}"
        )


class EventNotFoundError(EventError):
    """Raised when a stored event cannot be found by id."""

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Sync event {event_id!r} not found")


class EventAlreadyProcessedError(EventError):
    """Raised when retrying an event that has already been processed."""

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Sync event {event_id!r} is already processed")


# ── Remote marketplace ───────────────────────────────────────────────


class RemoteError(AllegroSyncError):
    """Base class for failures talking to the marketplace."""


class RemoteUnreachableError(RemoteError):
    """Network failure, timeout, throttling or a 5xx answer. Retryable."""


class RemoteRejectedError(RemoteError):
    """The marketplace rejected the request (4xx). Not retryable."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class RemoteNotFoundError(RemoteRejectedError):
    """The marketplace answered 404 for the requested resource."""


# ── Referential integrity ────────────────────────────────────────────


class DependencyError(AllegroSyncError):
    """Base class for referential-integrity failures."""


class DependencyNotFoundError(DependencyError):
    """The dependency exists neither locally nor on the marketplace."""

    def __init__(self, account_id: str, remote_id: str) -> None:
        self.account_id = account_id
        self.remote_id = remote_id
        super().__init__(
            f"Producer {remote_id!r} not found on Allegro for account {account_id!r}"
        )


class AccountMismatchError(DependencyError):
    """The credential does not belong to the account, or there is no account."""

    def __init__(self, account_id: str | None, reason: str) -> None:
        self.account_id = account_id
        self.reason = reason
        if account_id is None:
            super().__init__(f"No account: {reason}")
        else:
            super().__init__(f"Account {account_id!r} mismatch: {reason}")


class CredentialUnavailableError(DependencyError):
    """No usable marketplace credential exists for an account."""


# ── Conflict resolution ──────────────────────────────────────────────


class ManualReviewRequiredError(AllegroSyncError):
    """The resolver abstained; the record must be reviewed by a person."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record {record_id!r} requires manual conflict review")


# ── Concurrency ──────────────────────────────────────────────────────


class ConcurrencyError(AllegroSyncError):
    """Base class for all locking and lease conflicts."""


class LockAcquisitionError(ConcurrencyError):
    """Failed to acquire a lock within the timeout."""

    def __init__(
        self,
        resource: ResourceIdentifier,
        timeout: float,
        reason: str | None = None,
    ) -> None:
        self.resource = resource
        self.timeout = timeout
        self.reason = reason

        msg = f"Failed to acquire lock on {resource} within {timeout}s"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


class SyncRunInProgressError(ConcurrencyError):
    """Another run of the same sync type currently holds the run lease."""

    def __init__(self, sync_type: str) -> None:
        self.sync_type = sync_type
        super().__init__(f"A {sync_type} sync run is already in progress")


# ── Persistence ──────────────────────────────────────────────────────


class PersistenceError(AllegroSyncError):
    """Raised when the persistent store fails in an unexpected way."""
