"""Notification policy rules and the periodic scan pipeline."""

from rent_ledger.notifications.pipeline import NotificationScanPipeline
from rent_ledger.notifications.policy import reminder_due

__all__ = ["NotificationScanPipeline", "reminder_due"]
