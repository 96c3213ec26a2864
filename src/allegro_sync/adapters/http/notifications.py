"""HttpNotificationSender — posts notifications to the delivery service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from ...correlation import CORRELATION_HEADER, get_correlation_id
from ...ports.notifications import INotificationSender, NotificationResult
from ...primitives.exceptions import RemoteError, RemoteUnreachableError
from .marketplace import raise_for_status

if TYPE_CHECKING:
    from ...ports.notifications import NotificationRequest
    from ...resilience.retry import RetryExecutor

logger = logging.getLogger("allegro_sync.notifications")


class HttpNotificationSender(INotificationSender):
    """
    Sends through ``POST <base_url>/notifications/send``.

    Transport failures, timeouts and 5xx answers are retried by the optional
    :class:`RetryExecutor`. Whatever still fails comes back as an unsuccessful
    :class:`NotificationResult`; ``send`` does not raise.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        retry: RetryExecutor | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._retry = retry
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, request: NotificationRequest) -> NotificationResult:
        body = {
            "channel": request.channel.value,
            "type": request.type.value,
            "recipient": request.recipient,
            "subject": request.subject,
            "message": request.message,
            "templateData": request.template_data,
        }
        try:
            if self._retry is None:
                data = await self._post(body)
            else:
                data = await self._retry.execute(
                    self._post, body, operation="send_notification"
                )
        except RemoteError as exc:
            logger.error(
                "Notification %s to %s failed: %s",
                request.type.value,
                request.recipient,
                exc,
            )
            return NotificationResult(success=False, error=str(exc))

        if data.get("success", True) is False:
            return NotificationResult(success=False, error=data.get("error"))
        logger.info(
            "Notification %s sent to %s", request.type.value, request.recipient
        )
        return NotificationResult(success=True)

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        correlation_id = get_correlation_id()
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id
        try:
            response = await self._client.post(
                f"{self.base_url}/notifications/send", json=body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise RemoteUnreachableError(f"notification service: {exc}") from exc
        raise_for_status(response, "POST /notifications/send")
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
