"""Delivery channel interface."""

from typing import Protocol

from rent_ledger.models import Notification


class DeliveryChannel(Protocol):
    """Hands a notification to an outbound transport.

    ``mark_delivered`` returns ``True`` when the notification identified by
    ``notification.notification_id`` was accepted, ``False`` (or raises
    ``DeliveryError``) otherwise. It must not change the stored record; the
    scan pipeline moves it to ``sent``.
    """

    def mark_delivered(self, notification: Notification) -> bool: ...
