"""Rent payment models."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from rent_ledger.models.enums import PaymentStatus

ZERO = Decimal("0.00")


@dataclass
class PaymentDraft:
    """Monthly installment produced by the schedule generator, not yet stored."""

    contract_id: str
    reference_month: date  # first day of the month
    amount_due: Decimal
    due_date: date
    interest_amount: Decimal = ZERO
    penalty_amount: Decimal = ZERO
    status: PaymentStatus = PaymentStatus.PENDING


@dataclass
class Payment:
    """Stored monthly rent obligation."""

    payment_id: str
    contract_id: str
    reference_month: date
    amount_due: Decimal
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    interest_amount: Decimal = ZERO
    penalty_amount: Decimal = ZERO
    paid_amount: Decimal | None = None
    paid_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_due(self) -> Decimal:
        """Amount owed including accrued interest and penalty."""
        return self.amount_due + self.interest_amount + self.penalty_amount

    @property
    def is_settled(self) -> bool:
        """Paid and cancelled payments no longer accrue."""
        return self.status in (PaymentStatus.PAID, PaymentStatus.CANCELLED)

    @classmethod
    def from_draft(cls, payment_id: str, draft: PaymentDraft) -> "Payment":
        return cls(
            payment_id=payment_id,
            contract_id=draft.contract_id,
            reference_month=draft.reference_month,
            amount_due=draft.amount_due,
            due_date=draft.due_date,
            status=draft.status,
            interest_amount=draft.interest_amount,
            penalty_amount=draft.penalty_amount,
        )
