"""In-memory sender for test assertions."""

from __future__ import annotations

import logging

from ...ports.notifications import (
    INotificationSender,
    NotificationChannel,
    NotificationRequest,
    NotificationResult,
    NotificationType,
)

logger = logging.getLogger("allegro_sync.notifications")


class InMemorySender(INotificationSender):
    """
    Test double (Fake) that stores requests in a list for assertions.

    Set ``fail_with`` to make every send report a failure.
    """

    def __init__(self, *, fail_with: str | None = None) -> None:
        self.sent: list[NotificationRequest] = []
        self.fail_with = fail_with

    async def send(self, request: NotificationRequest) -> NotificationResult:
        if self.fail_with is not None:
            return NotificationResult(success=False, error=self.fail_with)
        self.sent.append(request)
        logger.debug("Recorded %s notification to %s", request.type.value, request.recipient)
        return NotificationResult(success=True)

    def of_type(self, notification_type: NotificationType) -> list[NotificationRequest]:
        return [r for r in self.sent if r.type == notification_type]

    def assert_sent(
        self,
        recipient: str,
        channel: NotificationChannel = NotificationChannel.EMAIL,
        count: int = 1,
    ) -> None:
        """Helper for test assertions."""
        matches = [
            r for r in self.sent if r.recipient == recipient and r.channel == channel
        ]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {recipient} via {channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        self.sent.clear()
