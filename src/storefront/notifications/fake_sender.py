"""Fake notification sender — records messages for testing."""

from uuid import uuid4

from storefront.notifications.port import NotificationError, NotificationSender


class FakeNotificationSender(NotificationSender):
    """Sender that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send_order_confirmation(self, order, recipient):
        return self._record("order_confirmation", order, recipient)

    def send_order_notification(self, order, recipient):
        return self._record("order_notification", order, recipient)

    def _record(self, kind, order, recipient):
        if not self.should_succeed:
            raise NotificationError(self.failure_reason)

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "kind": kind,
                "order_id": str(order.id),
                "order_number": order.order_number,
                "to": recipient,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def messages_for(self, kind: str) -> list[dict]:
        return [m for m in self.sent if m["kind"] == kind]

    def reset(self):
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
