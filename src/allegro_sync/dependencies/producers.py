"""ProducerSyncService — keeps responsible producers available locally."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..domain.models import Producer
from ..domain.results import ProducerSyncSummary
from ..primitives.exceptions import (
    AccountMismatchError,
    DependencyNotFoundError,
    RemoteNotFoundError,
)

if TYPE_CHECKING:
    from ..ports.credentials import AccountCredential, ICredentialProvider
    from ..ports.marketplace import IMarketplaceClient
    from ..ports.repositories import IProducerRepository
    from ..resilience.retry import RetryExecutor

logger = logging.getLogger("allegro_sync.producers")


class ProducerSyncService:
    """
    Referential-integrity guarantor for responsible producers.

    A product exported to Allegro may reference a producer by its remote id.
    :meth:`ensure_exists` makes sure a local row for ``(account_id,
    remote_id)`` exists first, fetching it with the account's credential when
    it does not.

    Two concurrent calls for the same missing producer may both fetch it; the
    upsert is keyed on ``(account_id, remote_id)`` so they converge on one row
    and both return its id.
    """

    def __init__(
        self,
        producers: IProducerRepository,
        marketplace: IMarketplaceClient,
        credentials: ICredentialProvider,
        *,
        retry: RetryExecutor | None = None,
    ) -> None:
        self.producers = producers
        self.marketplace = marketplace
        self.credentials = credentials
        self._retry = retry

    async def ensure_exists(
        self,
        account_id: str,
        remote_producer_id: str,
        *,
        user_id: str | None = None,
    ) -> str:
        """Return the local id of the producer, fetching it if needed.

        Raises:
            AccountMismatchError: The credential does not belong to the account
                (or to *user_id*).
            DependencyNotFoundError: Allegro does not know the producer either.
            CredentialUnavailableError: The account has no credential.
        """
        existing = await self.producers.get_by_remote_id(account_id, remote_producer_id)
        if existing is not None:
            return existing.id

        credential = await self._credential_for(account_id, user_id)
        try:
            data = await self._call(
                self.marketplace.get_responsible_producer,
                credential,
                remote_producer_id,
                operation="get_responsible_producer",
            )
        except RemoteNotFoundError as exc:
            raise DependencyNotFoundError(account_id, remote_producer_id) from exc

        stored = await self.producers.upsert(
            Producer.from_remote(account_id, {"id": remote_producer_id, **data})
        )
        logger.info(
            "Fetched producer %s for account %s (local id %s)",
            remote_producer_id,
            account_id,
            stored.id,
        )
        return stored.id

    async def sync_producers_for_account(
        self, account_id: str, *, user_id: str | None = None
    ) -> ProducerSyncSummary:
        """Pull every producer of the account and upsert each one."""
        credential = await self._credential_for(account_id, user_id)
        remote = await self._call(
            self.marketplace.list_responsible_producers,
            credential,
            operation="list_responsible_producers",
        )

        synced = errors = 0
        for data in remote:
            try:
                await self.producers.upsert(Producer.from_remote(account_id, data))
                synced += 1
            except Exception as exc:  # noqa: BLE001
                errors += 1
                logger.error(
                    "Failed to upsert producer %s for account %s: %s",
                    data.get("id"),
                    account_id,
                    exc,
                )

        summary = ProducerSyncSummary(total=len(remote), synced=synced, errors=errors)
        logger.info(
            "Producer sync for account %s: total=%d synced=%d errors=%d",
            account_id,
            summary.total,
            summary.synced,
            summary.errors,
        )
        return summary

    async def _credential_for(
        self, account_id: str, user_id: str | None
    ) -> AccountCredential:
        credential = await self.credentials.get_credential(account_id)
        if credential.account_id != account_id:
            raise AccountMismatchError(
                account_id, f"credential belongs to account {credential.account_id!r}"
            )
        if user_id is not None and credential.user_id != user_id:
            raise AccountMismatchError(
                account_id, f"account does not belong to user {user_id!r}"
            )
        return credential

    async def _call(self, fn: Any, *args: Any, operation: str) -> Any:
        if self._retry is None:
            return await fn(*args)
        return await self._retry.execute(fn, *args, operation=operation)
