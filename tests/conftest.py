"""Pytest configuration and fixtures."""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable

import pytest

from rent_ledger.models import Contract, NotificationPolicy, RateConfiguration
from rent_ledger.store import InMemoryStore


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def owner_id() -> str:
    """Sample owner (policy user) ID."""
    return "owner-test-001"


@pytest.fixture
def rates() -> RateConfiguration:
    """Operator rates: 1%/month interest, 2% penalty, 5 grace days."""
    return RateConfiguration(
        monthly_interest_rate=Decimal("0.01"),
        penalty_rate=Decimal("0.02"),
        grace_days=5,
    )


@pytest.fixture
def store(rates: RateConfiguration) -> InMemoryStore:
    """Empty in-memory store using the sample rates."""
    return InMemoryStore(rate_configuration=rates)


@pytest.fixture
def policy(store: InMemoryStore, owner_id: str) -> NotificationPolicy:
    """Default policy for the sample owner, stored."""
    policy = NotificationPolicy(user_id=owner_id)
    store.upsert_policy(policy)
    return policy


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock fixed at 09:00; the scan moves it onto the reference date."""
    return lambda: datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def make_contract(owner_id: str) -> Callable[..., Contract]:
    """Factory for contracts with sensible defaults."""
    counter = iter(range(1, 10_000))

    def factory(**overrides) -> Contract:
        n = next(counter)
        values = {
            "contract_id": f"contract-{n:03d}",
            "property_id": f"property-{n:03d}",
            "tenant_id": f"tenant-{n:03d}",
            "monthly_rent": Decimal("1500.00"),
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 12, 31),
            "due_day": 1,
            "owner_id": owner_id,
        }
        values.update(overrides)
        return Contract(**values)

    return factory
