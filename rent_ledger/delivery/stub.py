"""Delivery stub that only records hand-offs."""

import logging

from rent_ledger.exceptions import DeliveryError
from rent_ledger.models import Notification

logger = logging.getLogger(__name__)


class StubDelivery:
    """Accept every notification without sending anything.

    Parameters
    ----------
    fail_ids : set[str] | None
        Notification ids to reject, for exercising the retry-next-run path.
    raise_on_failure : bool
        Raise ``DeliveryError`` instead of returning ``False`` for rejected ids.
    """

    def __init__(self, fail_ids: set[str] | None = None, raise_on_failure: bool = False) -> None:
        self.fail_ids = set(fail_ids or ())
        self.raise_on_failure = raise_on_failure
        self.delivered: list[str] = []

    def mark_delivered(self, notification: Notification) -> bool:
        """Record the notification id as delivered."""
        notification_id = notification.notification_id
        if notification_id in self.fail_ids:
            if self.raise_on_failure:
                raise DeliveryError(f"Simulated delivery failure for {notification_id}")
            return False

        self.delivered.append(notification_id)
        logger.debug(
            "Delivered %s notification %s to user %s",
            notification.category.value,
            notification_id,
            notification.user_id,
        )
        return True
