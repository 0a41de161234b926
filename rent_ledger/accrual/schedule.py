"""Monthly payment schedule generation."""

from datetime import date

from rent_ledger.accrual.calculator import ZERO, clamp_day, to_decimal
from rent_ledger.exceptions import InvalidInputError
from rent_ledger.models import Contract, PaymentDraft, PaymentStatus


def _iter_months(start: date, end: date):
    """Yield (year, month) from start's month through end's month, inclusive."""
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            month = 1
            year += 1


def validate_contract(contract: Contract) -> None:
    """Raise InvalidInputError if the contract cannot be scheduled."""
    if not contract.contract_id:
        raise InvalidInputError("Contract must have a valid id")
    if contract.start_date is None or contract.end_date is None:
        raise InvalidInputError(f"Contract {contract.contract_id} must have start and end dates")
    if contract.start_date >= contract.end_date:
        raise InvalidInputError(
            f"Contract {contract.contract_id}: start date {contract.start_date} "
            f"must be before end date {contract.end_date}"
        )
    if to_decimal(contract.monthly_rent) <= ZERO:
        raise InvalidInputError(f"Contract {contract.contract_id}: rent must be greater than zero")
    if not 1 <= contract.due_day <= 31:
        raise InvalidInputError(
            f"Contract {contract.contract_id}: due day must be within [1, 31], got {contract.due_day}"
        )
    if contract.deposit is not None and to_decimal(contract.deposit) < ZERO:
        raise InvalidInputError(f"Contract {contract.contract_id}: deposit cannot be negative")


def generate_monthly_schedule(contract: Contract) -> list[PaymentDraft]:
    """Expand a contract into one pending payment per calendar month.

    The due day is clamped to the last day of shorter months, so a contract
    due on the 31st is due on April 30 and on February 28/29.

    Parameters
    ----------
    contract : Contract
        Contract with an id, ``start_date < end_date``, positive rent and a
        due day in [1, 31].

    Returns
    -------
    list[PaymentDraft]
        Drafts ordered by reference month.
    """
    validate_contract(contract)
    rent = to_decimal(contract.monthly_rent)

    return [
        PaymentDraft(
            contract_id=contract.contract_id,
            reference_month=date(year, month, 1),
            amount_due=rent,
            due_date=clamp_day(year, month, contract.due_day),
            status=PaymentStatus.PENDING,
        )
        for year, month in _iter_months(contract.start_date, contract.end_date)
    ]
