"""Financial rate configuration."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from rent_ledger.exceptions import InvalidInputError

MAX_GRACE_DAYS = 30


@dataclass
class RateConfiguration:
    """Rates applied to late rent.

    Rates are fractions: ``monthly_interest_rate=Decimal("0.01")`` means 1%
    per month, pro-rated daily over 30 days. ``penalty_rate`` is charged once
    as soon as the grace period is exceeded.
    """

    monthly_interest_rate: Decimal = Decimal("0.01")
    penalty_rate: Decimal = Decimal("0.02")
    grace_days: int = 5
    commission_rate: Decimal = Decimal("0.10")
    user_id: str | None = None  # None is the operator-wide configuration
    updated_at: datetime | None = None

    def validate(self) -> None:
        """Raise InvalidInputError if any rate or the grace period is out of range."""
        for name in ("monthly_interest_rate", "penalty_rate", "commission_rate"):
            value = getattr(self, name)
            if not Decimal("0") <= value <= Decimal("1"):
                raise InvalidInputError(f"{name} must be within [0, 1], got {value}")
        if not 0 <= self.grace_days <= MAX_GRACE_DAYS:
            raise InvalidInputError(
                f"grace_days must be within [0, {MAX_GRACE_DAYS}], got {self.grace_days}"
            )
