"""Marketplace credential port."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class AccountCredential:
    """A bearer credential issued for one marketplace account.

    ``user_id`` identifies the local user that owns the account; ownership is
    checked before the credential is used on that user's behalf.
    """

    account_id: str
    access_token: str
    user_id: str | None = None

    def __repr__(self) -> str:
        return (
            f"AccountCredential(account_id={self.account_id!r}, "
            f"user_id={self.user_id!r}, access_token='***')"
        )


@runtime_checkable
class ICredentialProvider(Protocol):
    """Resolves the credential for an account (OAuth flow lives elsewhere)."""

    async def get_credential(self, account_id: str) -> AccountCredential:
        """Return the account credential.

        Raises:
            CredentialUnavailableError: If the account has no usable credential.
        """
        ...
