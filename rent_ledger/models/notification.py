"""Notification and notification policy models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from rent_ledger.exceptions import InvalidInputError, InvalidStateTransitionError
from rent_ledger.models.enums import (
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
)

# pending -> sent -> read, with cancelled reachable from pending or sent
ALLOWED_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.PENDING: frozenset({NotificationStatus.SENT, NotificationStatus.CANCELLED}),
    NotificationStatus.SENT: frozenset({NotificationStatus.READ, NotificationStatus.CANCELLED}),
    NotificationStatus.READ: frozenset(),
    NotificationStatus.CANCELLED: frozenset(),
}


@dataclass
class Notification:
    """Alert emitted by the notification scan."""

    category: NotificationCategory
    title: str
    message: str
    priority: NotificationPriority
    user_id: str
    contract_id: str | None = None
    payment_id: str | None = None
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime | None = None
    sent_at: datetime | None = None
    read_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    notification_id: str | None = None  # assigned by the store

    def can_transition_to(self, status: NotificationStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, status: NotificationStatus, at: datetime) -> None:
        """Move to ``status``, stamping the matching timestamp.

        Raises
        ------
        InvalidStateTransitionError
            If the move is not allowed from the current status.
        """
        if not self.can_transition_to(status):
            raise InvalidStateTransitionError(
                f"Notification {self.notification_id} cannot go from "
                f"{self.status.value} to {status.value}"
            )
        self.status = status
        if status == NotificationStatus.SENT:
            self.sent_at = at
        elif status == NotificationStatus.READ:
            self.read_at = at


@dataclass
class NotificationPolicy:
    """Per-user notification preferences."""

    user_id: str
    days_before_due: int = 3
    notify_due_soon: bool = True
    notify_overdue: bool = True
    reminder_interval_days: int = 7
    max_reminders: int = 3
    days_before_contract_end: int = 30
    notify_contract_expiring: bool = True
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def validate(self) -> None:
        """Raise InvalidInputError if a window, interval or cap is out of range."""
        if not 0 <= self.days_before_due <= 30:
            raise InvalidInputError(f"days_before_due must be within [0, 30], got {self.days_before_due}")
        if not 1 <= self.reminder_interval_days <= 30:
            raise InvalidInputError(
                f"reminder_interval_days must be within [1, 30], got {self.reminder_interval_days}"
            )
        if not 0 <= self.max_reminders <= 10:
            raise InvalidInputError(f"max_reminders must be within [0, 10], got {self.max_reminders}")
        if not 0 <= self.days_before_contract_end <= 365:
            raise InvalidInputError(
                f"days_before_contract_end must be within [0, 365], got {self.days_before_contract_end}"
            )
