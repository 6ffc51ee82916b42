"""Notification dispatcher port: how the core tells people about their orders."""

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):
    @abstractmethod
    def notify(self, user_id: str, title: str, message: str, metadata: dict | None = None) -> dict:
        """Deliver a notification to one user.

        Returns:
            dict with keys: notification_id, status ("sent" or "failed"), error (optional)
        """
        ...
