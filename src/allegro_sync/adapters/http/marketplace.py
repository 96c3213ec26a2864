"""AllegroHttpClient — httpx implementation of the marketplace port."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from ...correlation import CORRELATION_HEADER, get_correlation_id
from ...domain.event_types import EventStream, native_event_id
from ...ports.marketplace import IMarketplaceClient, MarketplaceEventPage
from ...primitives.exceptions import (
    RemoteNotFoundError,
    RemoteRejectedError,
    RemoteUnreachableError,
)

if TYPE_CHECKING:
    from types import TracebackType

    from ...ports.credentials import AccountCredential, ICredentialProvider

logger = logging.getLogger("allegro_sync.http")

ALLEGRO_MEDIA_TYPE = "application/vnd.allegro.public.v1+json"

# stream -> (path, key of the event list in the answer)
_EVENT_ENDPOINTS: dict[EventStream, tuple[str, str]] = {
    EventStream.OFFERS: ("/sale/offer-events", "offerEvents"),
    EventStream.ORDERS: ("/order/events", "events"),
}


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def raise_for_status(response: httpx.Response, operation: str) -> None:
    """Translate a non-2xx answer into the remote error taxonomy."""
    status = response.status_code
    if status < 400:
        return
    message = f"{operation} answered HTTP {status}"
    if status == 429 or status >= 500:
        raise RemoteUnreachableError(message)
    body = _error_body(response)
    if status == 404:
        raise RemoteNotFoundError(message, status_code=status, body=body)
    raise RemoteRejectedError(message, status_code=status, body=body)


class AllegroHttpClient(IMarketplaceClient):
    """
    Allegro REST client acting for one marketplace account.

    Offer, order and event calls use the credential of ``account_id``;
    producer calls use the credential passed in by the caller. Every request
    carries the current correlation id.

    The client owns its ``httpx.AsyncClient`` unless one is injected::

        async with AllegroHttpClient(url, credentials, "acc-1") as client:
            page = await client.fetch_events(EventStream.OFFERS)
    """

    def __init__(
        self,
        base_url: str,
        credentials: ICredentialProvider,
        account_id: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.account_id = account_id
        self._credentials = credentials
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AllegroHttpClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ── IMarketplaceClient ────────────────────────────────────────────

    async def fetch_events(
        self,
        stream: EventStream,
        *,
        from_event_id: str | None = None,
        limit: int = 100,
    ) -> MarketplaceEventPage:
        path, key = _EVENT_ENDPOINTS[stream]
        params: dict[str, Any] = {"limit": limit}
        if from_event_id:
            params["from"] = from_event_id
        data = await self._request("GET", path, params=params)
        events = list(data.get(key) or [])
        last_event_id = data.get("lastEventId")
        if last_event_id is None and events:
            last_event_id = native_event_id(events[-1])
        return MarketplaceEventPage(
            events=events, last_event_id=last_event_id or from_event_id
        )

    async def get_offer(self, offer_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/sale/offers/{offer_id}")

    async def create_offer(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/sale/offers", json=payload)

    async def update_offer(
        self, offer_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request("PUT", f"/sale/offers/{offer_id}", json=payload)

    async def get_order(self, order_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/order/checkout-forms/{order_id}")

    async def get_responsible_producer(
        self, credential: AccountCredential, producer_id: str
    ) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/sale/responsible-producers/{producer_id}",
            credential=credential,
        )

    async def list_responsible_producers(
        self, credential: AccountCredential
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", "/sale/responsible-producers", credential=credential
        )
        return list(data.get("responsibleProducers") or [])

    # ── Transport ─────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        credential: AccountCredential | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if credential is None:
            credential = await self._credentials.get_credential(self.account_id)
        operation = f"{method} {path}"
        headers = {
            "Authorization": f"Bearer {credential.access_token}",
            "Accept": ALLEGRO_MEDIA_TYPE,
            "Content-Type": ALLEGRO_MEDIA_TYPE,
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id

        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise RemoteUnreachableError(f"{operation} timed out") from exc
        except httpx.TransportError as exc:
            raise RemoteUnreachableError(f"{operation} failed: {exc}") from exc

        logger.debug("%s -> %d", operation, response.status_code)
        raise_for_status(response, operation)
        if not response.content:
            return {}
        data = response.json()
        return data if isinstance(data, dict) else {"items": data}
