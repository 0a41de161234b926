"""Rental portfolio generator for local runs and tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterator

from rent_ledger.accrual.calculator import round_money
from rent_ledger.generators.base import BaseGenerator
from rent_ledger.models import Contract, NotificationPolicy, RateConfiguration


class PortfolioGenerator(BaseGenerator):
    """Generate synthetic contracts and owner notification policies.

    Contracts are spread over a small set of owners so each generated
    policy has several leases to watch.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    owners : int
        Number of distinct owners to spread contracts over.
    """

    # Monthly rent range (BRL)
    RENT_RANGE = (800, 9000)
    DURATIONS_MONTHS = [6, 12, 24, 30, 36]
    DURATION_WEIGHTS = [0.10, 0.45, 0.20, 0.15, 0.10]
    DUE_DAYS = [1, 5, 10, 15, 20, 28, 30, 31]

    def __init__(self, seed: int | None = None, owners: int = 3) -> None:
        super().__init__(seed)
        self.owner_ids = [self.fake.uuid4() for _ in range(max(1, owners))]

    def generate(self, today: date | None = None) -> Contract:
        """Generate a single contract that is running on ``today``.

        Returns
        -------
        Contract
            Generated contract.
        """
        return self._generate_one(today or date.today())

    def generate_batch(self, count: int, today: date | None = None) -> Iterator[Contract]:
        """Generate multiple contracts.

        Parameters
        ----------
        count : int
            Number of contracts to generate.
        today : date | None
            Date every generated contract must be running on.

        Yields
        ------
        Contract
            Generated contracts.
        """
        today = today or date.today()
        for _ in range(count):
            yield self._generate_one(today)

    def generate_policies(self) -> list[NotificationPolicy]:
        """One policy per owner, with a mix of default and tuned settings."""
        policies = []
        for owner_id in self.owner_ids:
            policies.append(
                NotificationPolicy(
                    user_id=owner_id,
                    days_before_due=self.rng.choice([1, 3, 5]),
                    reminder_interval_days=self.rng.choice([3, 7, 10]),
                    max_reminders=self.rng.choice([2, 3, 5]),
                    days_before_contract_end=self.rng.choice([30, 60, 90]),
                    created_at=datetime.now(),
                )
            )
        return policies

    def generate_rates(self) -> RateConfiguration:
        return RateConfiguration(
            monthly_interest_rate=Decimal("0.01"),
            penalty_rate=Decimal("0.02"),
            grace_days=self.rng.choice([0, 3, 5]),
            commission_rate=Decimal("0.10"),
        )

    def _generate_one(self, today: date) -> Contract:
        """Generate a single contract."""
        duration = self.rng.choices(self.DURATIONS_MONTHS, weights=self.DURATION_WEIGHTS, k=1)[0]
        # Start somewhere within the lease so it is still running today
        elapsed = self.rng.randint(0, duration - 1)
        start = _add_months(today.replace(day=1), -elapsed)
        end = _add_months(start, duration) - timedelta(days=1)

        rent = round_money(Decimal(str(self.rng.uniform(*self.RENT_RANGE))))
        return Contract(
            contract_id=self.fake.uuid4(),
            property_id=self.fake.uuid4(),
            tenant_id=self.fake.uuid4(),
            monthly_rent=rent,
            start_date=start,
            end_date=end,
            due_day=self.rng.choice(self.DUE_DAYS),
            owner_id=self.rng.choice(self.owner_ids),
            deposit=round_money(rent * 3),
            notes=f"{self.fake.street_name()}, {self.fake.building_number()} - {self.fake.city()}",
            created_at=datetime.now(),
        )


def _add_months(value: date, months: int) -> date:
    """Shift a first-of-month date by whole months."""
    index = value.year * 12 + value.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)
