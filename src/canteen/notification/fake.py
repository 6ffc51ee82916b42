"""In-memory dispatcher that records notifications for test assertions."""

from uuid import uuid4

from canteen.notification.port import NotificationDispatcher


class FakeNotificationDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, user_id: str, title: str, message: str, metadata: dict | None = None) -> dict:
        if not self.should_succeed:
            return {"notification_id": None, "status": "failed", "error": self.failure_reason}

        notification_id = f"ntf-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "notification_id": notification_id,
                "user_id": user_id,
                "title": title,
                "message": message,
                "metadata": metadata or {},
            }
        )
        return {"notification_id": notification_id, "status": "sent"}

    def sent_to(self, user_id: str) -> list[dict]:
        return [n for n in self.sent if n["user_id"] == str(user_id)]

    def reset(self):
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
