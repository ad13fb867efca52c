"""Notification sender factory.

get_notifier() / set_notifier() swap implementations; the fake sender is
used until a real one is configured.
"""

from storefront.notifications.fake_sender import FakeNotificationSender
from storefront.notifications.port import NotificationSender

_current_notifier: NotificationSender | None = None


def get_notifier() -> NotificationSender:
    """Return the current notification sender. Defaults to FakeNotificationSender."""
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = FakeNotificationSender()
    return _current_notifier


def set_notifier(notifier: NotificationSender) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None
