"""Accrual, profitability and schedule calculations."""

from rent_ledger.accrual.calculator import (
    commission_for,
    compute_accrual,
    compute_profitability,
    compute_rental_statistics,
    days_between,
    next_due_date,
)
from rent_ledger.accrual.resolver import PaymentStateResolver, resolve_payment
from rent_ledger.accrual.schedule import generate_monthly_schedule

__all__ = [
    "PaymentStateResolver",
    "commission_for",
    "compute_accrual",
    "compute_profitability",
    "compute_rental_statistics",
    "days_between",
    "generate_monthly_schedule",
    "next_due_date",
    "resolve_payment",
]
