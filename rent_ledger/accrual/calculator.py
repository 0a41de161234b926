"""Pure accrual and profitability calculations.

All monetary results are ``Decimal`` values rounded half-up to cents. Inputs
may be ``Decimal``, ``int`` or ``float``; floats go through ``str`` so that
``0.01`` stays ``Decimal("0.01")``.
"""

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from rent_ledger.exceptions import InvalidInputError
from rent_ledger.models import (
    AccrualResult,
    Payment,
    PaymentStatus,
    ProfitabilityResult,
    RateConfiguration,
    RentalStatistics,
)

CENTS = Decimal("0.01")
DAYS_PER_MONTH = 30
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Property value is estimated as this many months of revenue for ROI.
PROPERTY_VALUE_MONTHS = 100

Number = Decimal | int | float


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"Expected a number, got {value!r}")
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_accrual(
    owed: Number,
    days_late: int,
    monthly_interest_rate: Number,
    penalty_rate: Number,
    grace_days: int = 0,
) -> AccrualResult:
    """Compute interest and penalty on a late payment.

    Parameters
    ----------
    owed : Number
        Original amount due. Must be positive; rounded to cents first.
    days_late : int
        Days elapsed since the due date. Must be non-negative.
    monthly_interest_rate : Number
        Monthly rate as a fraction, pro-rated over 30 days.
    penalty_rate : Number
        Flat penalty as a fraction, charged once.
    grace_days : int
        Days after the due date during which nothing accrues.

    Returns
    -------
    AccrualResult
        Rounded interest, penalty and their sum with ``owed``.

    Raises
    ------
    InvalidInputError
        On non-positive ``owed``, negative ``days_late`` or ``grace_days``,
        or rates outside [0, 1].
    """
    owed_d = round_money(to_decimal(owed))
    interest_rate = to_decimal(monthly_interest_rate)
    penalty_rate_d = to_decimal(penalty_rate)

    if owed_d <= ZERO:
        raise InvalidInputError(f"Amount owed must be greater than zero, got {owed_d}")
    if days_late < 0:
        raise InvalidInputError(f"days_late cannot be negative, got {days_late}")
    if grace_days < 0:
        raise InvalidInputError(f"grace_days cannot be negative, got {grace_days}")
    for name, rate in (("monthly_interest_rate", interest_rate), ("penalty_rate", penalty_rate_d)):
        if rate < ZERO or rate > 1:
            raise InvalidInputError(f"{name} must be within [0, 1], got {rate}")

    if days_late <= grace_days:
        return AccrualResult(interest=round_money(ZERO), penalty=round_money(ZERO), total=owed_d)

    days_beyond_grace = days_late - grace_days
    penalty = round_money(owed_d * penalty_rate_d)
    # owed * (rate / 30) * days, multiplied first to keep the division exact
    interest = round_money(owed_d * interest_rate * days_beyond_grace / DAYS_PER_MONTH)

    return AccrualResult(interest=interest, penalty=penalty, total=owed_d + interest + penalty)


def _sum_non_negative(values: Iterable[Number], label: str) -> Decimal:
    total = ZERO
    for value in values:
        amount = to_decimal(value)
        if amount < ZERO:
            raise InvalidInputError(f"All {label} values must be non-negative, got {amount}")
        total += amount
    return total


def compute_profitability(revenues: Iterable[Number], expenses: Iterable[Number]) -> ProfitabilityResult:
    """Compute gross, net and margin percentage from revenue and expense series.

    A zero gross yields a zero margin rather than an error.
    """
    gross = _sum_non_negative(revenues, "revenue")
    net = gross - _sum_non_negative(expenses, "expense")
    margin = net / gross * HUNDRED if gross > ZERO else ZERO

    return ProfitabilityResult(
        gross=round_money(gross),
        net=round_money(net),
        margin_percent=round_money(margin),
    )


def compute_rental_statistics(
    payments: Iterable[Payment],
    expenses: Iterable[Number],
    period_months: int = 12,
) -> RentalStatistics:
    """Average monthly figures, occupancy and ROI for one property.

    Only ``paid`` payments count as revenue. Occupancy is the share of the
    period with at least one paid reference month.
    """
    if period_months < 0:
        raise InvalidInputError(f"period_months cannot be negative, got {period_months}")

    paid = [p for p in payments if p.status == PaymentStatus.PAID]
    revenue = sum((p.paid_amount or ZERO for p in paid), ZERO)
    expense = _sum_non_negative(expenses, "expense")

    if period_months == 0:
        zero = round_money(ZERO)
        return RentalStatistics(zero, zero, zero, zero, zero)

    months = Decimal(period_months)
    avg_revenue = revenue / months
    avg_expense = expense / months
    avg_net = avg_revenue - avg_expense
    occupancy = Decimal(len({p.reference_month for p in paid})) / months * HUNDRED

    property_value = avg_revenue * PROPERTY_VALUE_MONTHS
    roi = avg_net * 12 / property_value * HUNDRED if property_value > ZERO else ZERO

    return RentalStatistics(
        average_monthly_revenue=round_money(avg_revenue),
        average_monthly_expense=round_money(avg_expense),
        average_monthly_net=round_money(avg_net),
        occupancy_rate=round_money(occupancy),
        annual_roi=round_money(roi),
    )


def commission_for(amount: Number, rates: RateConfiguration) -> Decimal:
    """Operator commission on a received rent amount."""
    value = to_decimal(amount)
    if value < ZERO:
        raise InvalidInputError(f"Amount cannot be negative, got {value}")
    return round_money(value * rates.commission_rate)


def clamp_day(year: int, month: int, day: int) -> date:
    """Return ``day`` of the month, or the month's last day when it does not exist."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def next_due_date(due_day: int, reference_date: date) -> date:
    """First due date strictly after ``reference_date`` for a monthly due day."""
    if not 1 <= due_day <= 31:
        raise InvalidInputError(f"due_day must be within [1, 31], got {due_day}")

    candidate = clamp_day(reference_date.year, reference_date.month, due_day)
    if candidate > reference_date:
        return candidate

    first_of_next = (reference_date.replace(day=1) + timedelta(days=32)).replace(day=1)
    return clamp_day(first_of_next.year, first_of_next.month, due_day)


def days_between(start: date, end: date) -> int:
    """Signed number of days from ``start`` to ``end``."""
    return (end - start).days
