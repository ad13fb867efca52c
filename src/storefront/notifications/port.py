"""Notification sender port — order confirmation and admin notices.

Rendering and delivery belong to the adapter. Senders raise
``NotificationError`` when a message cannot be handed off.
"""

from abc import ABC, abstractmethod


class NotificationError(Exception):
    """A notification could not be delivered to the channel."""


class NotificationSender(ABC):
    @abstractmethod
    def send_order_confirmation(self, order, recipient: str) -> dict:
        """Send the customer-facing order confirmation.

        Returns:
            dict with keys: message_id, status ("sent")
        """
        ...

    @abstractmethod
    def send_order_notification(self, order, recipient: str) -> dict:
        """Notify store staff about a new paid order."""
        ...
