"""Fixed notification rules derived from a user's policy."""

from datetime import date, datetime, time, timedelta

from rent_ledger.models import NotificationPolicy, NotificationPriority


def due_soon_window(policy: NotificationPolicy, today: date) -> tuple[date, date]:
    """Due dates in this inclusive range trigger a due-soon notice."""
    return today, today + timedelta(days=policy.days_before_due)


def contract_expiry_window(policy: NotificationPolicy, today: date) -> tuple[date, date]:
    """Contract end dates in this inclusive range trigger an expiry notice."""
    return today, today + timedelta(days=policy.days_before_contract_end)


def overdue_cooldown_start(policy: NotificationPolicy, now: datetime) -> datetime:
    """An overdue notice created at or after this instant suppresses a new one.

    The window counts calendar days: with a 7-day interval a notice sent on
    day 0 blocks days 1-6 and the next one may go out on day 7.
    """
    start_day = now.date() - timedelta(days=policy.reminder_interval_days - 1)
    return datetime.combine(start_day, time.min)


def due_soon_priority(days_remaining: int, high_within_days: int = 1) -> NotificationPriority:
    if days_remaining <= high_within_days:
        return NotificationPriority.HIGH
    return NotificationPriority.MEDIUM


def overdue_priority(days_late: int, urgent_after_days: int = 30) -> NotificationPriority:
    if days_late > urgent_after_days:
        return NotificationPriority.URGENT
    return NotificationPriority.HIGH


def expiring_priority(days_remaining: int, high_within_days: int = 7) -> NotificationPriority:
    if days_remaining <= high_within_days:
        return NotificationPriority.HIGH
    return NotificationPriority.MEDIUM


def reminder_due(
    days_late: int,
    interval_days: int,
    reminders_sent: int,
    max_reminders: int,
    catch_up: bool = False,
) -> bool:
    """Decide whether a cadence reminder fires today.

    By default a reminder fires only when ``days_late`` is an exact positive
    multiple of the interval (day 7, 14, 21 for a weekly cadence), so a
    missed run skips that reminder. With ``catch_up`` a reminder fires
    whenever fewer reminders were sent than intervals have elapsed.
    """
    if days_late <= 0 or interval_days <= 0 or reminders_sent >= max_reminders:
        return False
    if catch_up:
        return days_late // interval_days > reminders_sent
    return days_late % interval_days == 0
