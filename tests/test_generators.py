"""Tests for sample data generators."""

from datetime import date

from rent_ledger.accrual.schedule import generate_monthly_schedule
from rent_ledger.generators import PortfolioGenerator


class TestPortfolioGenerator:
    """Tests for PortfolioGenerator."""

    def test_generate_contract(self, seed: int) -> None:
        """Generated contracts are valid and running on the given day."""
        today = date(2024, 3, 15)
        gen = PortfolioGenerator(seed=seed)

        contract = gen.generate(today=today)

        assert contract.start_date <= today <= contract.end_date
        assert contract.start_date.day == 1
        assert contract.owner_id in gen.owner_ids
        assert PortfolioGenerator.RENT_RANGE[0] <= contract.monthly_rent <= PortfolioGenerator.RENT_RANGE[1]
        assert contract.monthly_rent.as_tuple().exponent == -2
        assert generate_monthly_schedule(contract)

    def test_generate_batch(self, seed: int) -> None:
        gen = PortfolioGenerator(seed=seed, owners=2)

        contracts = list(gen.generate_batch(25, today=date(2024, 3, 15)))

        assert len(contracts) == 25
        assert len({c.contract_id for c in contracts}) == 25
        assert {c.owner_id for c in contracts} <= set(gen.owner_ids)
        for contract in contracts:
            drafts = generate_monthly_schedule(contract)
            assert len(drafts) in PortfolioGenerator.DURATIONS_MONTHS

    def test_seed_reproducibility(self, seed: int) -> None:
        """Same seed produces the same portfolio."""
        first = list(PortfolioGenerator(seed=seed).generate_batch(5, today=date(2024, 3, 15)))
        second = list(PortfolioGenerator(seed=seed).generate_batch(5, today=date(2024, 3, 15)))

        assert [(c.contract_id, c.monthly_rent, c.due_day, c.start_date) for c in first] == [
            (c.contract_id, c.monthly_rent, c.due_day, c.start_date) for c in second
        ]

    def test_generate_policies(self, seed: int) -> None:
        gen = PortfolioGenerator(seed=seed, owners=4)

        policies = gen.generate_policies()

        assert [p.user_id for p in policies] == gen.owner_ids
        for policy in policies:
            policy.validate()

    def test_generate_rates(self, seed: int) -> None:
        rates = PortfolioGenerator(seed=seed).generate_rates()

        rates.validate()
        assert rates.grace_days in (0, 3, 5)
