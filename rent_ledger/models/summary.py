"""Result types returned by the calculator and the notification scan."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from rent_ledger.models.enums import NotificationCategory, PaymentStatus


@dataclass(frozen=True)
class AccrualResult:
    """Interest and penalty owed on a late payment."""

    interest: Decimal
    penalty: Decimal
    total: Decimal


@dataclass(frozen=True)
class ProfitabilityResult:
    """Gross/net revenue and margin over a period."""

    gross: Decimal
    net: Decimal
    margin_percent: Decimal


@dataclass(frozen=True)
class RentalStatistics:
    """Monthly averages and occupancy for a property."""

    average_monthly_revenue: Decimal
    average_monthly_expense: Decimal
    average_monthly_net: Decimal
    occupancy_rate: Decimal
    annual_roi: Decimal


@dataclass(frozen=True)
class PaymentState:
    """Current status and owed amount of a payment at a reference date."""

    status: PaymentStatus
    days_late: int
    interest: Decimal
    penalty: Decimal
    total_due: Decimal


@dataclass
class ScanError:
    """Non-fatal failure recorded during a scan."""

    stage: str
    message: str
    user_id: str | None = None
    record_id: str | None = None


def _empty_counts() -> dict[NotificationCategory, int]:
    return {category: 0 for category in NotificationCategory}


@dataclass
class ProcessingSummary:
    """Outcome of one ``run_scan`` invocation."""

    reference_date: date
    started_at: datetime
    finished_at: datetime | None = None
    created: dict[NotificationCategory, int] = field(default_factory=_empty_counts)
    delivered: int = 0
    payments_refreshed: int = 0
    payments_overdue: int = 0
    errors: list[ScanError] = field(default_factory=list)
    aborted: bool = False
    skipped: bool = False

    @property
    def total_created(self) -> int:
        return sum(self.created.values())

    @property
    def succeeded(self) -> bool:
        return not (self.aborted or self.skipped or self.errors)

    def record_error(
        self,
        stage: str,
        message: str,
        user_id: str | None = None,
        record_id: str | None = None,
    ) -> None:
        self.errors.append(ScanError(stage=stage, message=message, user_id=user_id, record_id=record_id))

    def reset_progress(self) -> None:
        """Zero every counter; used when the run aborts."""
        self.created = _empty_counts()
        self.delivered = 0
        self.payments_refreshed = 0
        self.payments_overdue = 0
