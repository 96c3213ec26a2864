"""Static credential provider for single-process use and tests."""

from __future__ import annotations

from ...ports.credentials import AccountCredential, ICredentialProvider
from ...primitives.exceptions import CredentialUnavailableError


class StaticCredentialProvider(ICredentialProvider):
    """Serves credentials registered up front, keyed by account id."""

    def __init__(self, credentials: dict[str, AccountCredential] | None = None) -> None:
        self._credentials = dict(credentials or {})

    def register(self, account_id: str, credential: AccountCredential) -> None:
        self._credentials[account_id] = credential

    async def get_credential(self, account_id: str) -> AccountCredential:
        try:
            return self._credentials[account_id]
        except KeyError:
            raise CredentialUnavailableError(
                f"No marketplace credential for account {account_id!r}"
            ) from None
