"""Notification dispatcher registry.

Uses the in-memory fake by default. A transport-backed dispatcher (push,
email) is installed at start-up with ``set_dispatcher``.
"""

from canteen.notification.port import NotificationDispatcher

_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        from canteen.notification.fake import FakeNotificationDispatcher

        _dispatcher = FakeNotificationDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def reset_dispatcher() -> None:
    """Drop the configured dispatcher (useful for testing)."""
    global _dispatcher
    _dispatcher = None
