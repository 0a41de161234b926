"""Contract and payment lifecycle operations."""

import logging
from datetime import date, datetime
from decimal import Decimal

from rent_ledger.accrual.calculator import ZERO, round_money, to_decimal
from rent_ledger.accrual.schedule import generate_monthly_schedule
from rent_ledger.exceptions import InvalidInputError, InvalidStateTransitionError
from rent_ledger.models import (
    Contract,
    ContractStatus,
    NotificationStatus,
    Payment,
    PaymentStatus,
)
from rent_ledger.store.base import DataStore, NotificationFilter

logger = logging.getLogger(__name__)


def create_contract(store: DataStore, contract: Contract) -> list[Payment]:
    """Store a new contract and its full monthly payment schedule.

    The schedule is generated eagerly, once, so reports see every
    installment from the day the lease is signed. The contract and its
    payments are written together; a failed write stores none of them.

    Returns
    -------
    list[Payment]
        Stored payments, one per month of the contract.
    """
    drafts = generate_monthly_schedule(contract)
    payments = store.add_contract_with_schedule(contract, drafts)
    logger.info("Created contract %s with %d payments", contract.contract_id, len(payments))
    return payments


def register_payment(
    store: DataStore,
    payment_id: str,
    paid_amount: Decimal | int | float,
    paid_date: date,
    now: datetime | None = None,
) -> Payment:
    """Record a received payment.

    The payment moves to ``paid``; accrued interest and penalty are zeroed
    and no longer change.

    Raises
    ------
    InvalidInputError
        If ``paid_amount`` is not positive.
    InvalidStateTransitionError
        If the payment is already paid or was cancelled.
    """
    amount = to_decimal(paid_amount)
    if amount <= ZERO:
        raise InvalidInputError(f"Paid amount must be greater than zero, got {amount}")

    payment = store.get_payment(payment_id)
    if payment.is_settled:
        raise InvalidStateTransitionError(
            f"Payment {payment_id} is {payment.status.value} and cannot be registered"
        )

    payment.status = PaymentStatus.PAID
    payment.paid_amount = round_money(amount)
    payment.paid_date = paid_date
    payment.interest_amount = round_money(ZERO)
    payment.penalty_amount = round_money(ZERO)
    payment.updated_at = now or datetime.now()
    store.update_payment(payment)
    logger.info("Registered payment %s: %s on %s", payment_id, payment.paid_amount, paid_date)
    return payment


def close_contract(
    store: DataStore,
    contract_id: str,
    closed_on: date,
    now: datetime | None = None,
) -> Contract:
    """Close a contract without deleting anything.

    Unpaid installments due after ``closed_on`` are cancelled, as are
    notifications about the contract or its payments that are still
    pending or sent.
    """
    now = now or datetime.now()
    contract = store.get_contract(contract_id)
    if contract.status == ContractStatus.CLOSED:
        raise InvalidStateTransitionError(f"Contract {contract_id} is already closed")

    contract.status = ContractStatus.CLOSED
    contract.updated_at = now
    store.update_contract(contract)

    cancelled_payments = 0
    for payment in store.list_payments(contract_id=contract_id, due_from=closed_on):
        if payment.due_date <= closed_on or payment.is_settled:
            continue
        payment.status = PaymentStatus.CANCELLED
        payment.updated_at = now
        store.update_payment(payment)
        cancelled_payments += 1

    cancelled_notifications = 0
    for status in (NotificationStatus.PENDING, NotificationStatus.SENT):
        for notification in store.list_notifications(NotificationFilter(contract_id=contract_id, status=status)):
            notification.transition_to(NotificationStatus.CANCELLED, now)
            store.update_notification(notification)
            cancelled_notifications += 1

    logger.info(
        "Closed contract %s: cancelled %d payments and %d notifications",
        contract_id,
        cancelled_payments,
        cancelled_notifications,
    )
    return contract
