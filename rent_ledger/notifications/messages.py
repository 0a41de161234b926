"""Notification builders for each category."""

from datetime import datetime

from rent_ledger.models import (
    Contract,
    Notification,
    NotificationCategory,
    NotificationPriority,
    Payment,
    PaymentState,
)


def _money(value) -> str:
    return f"{value:,.2f}"


def due_soon(
    user_id: str,
    payment: Payment,
    contract: Contract,
    days_remaining: int,
    priority: NotificationPriority,
    created_at: datetime,
) -> Notification:
    return Notification(
        category=NotificationCategory.DUE_SOON,
        title="Rent due soon",
        message=(
            f"Rent for property {contract.property_id} is due in {days_remaining} day(s) "
            f"on {payment.due_date.isoformat()}. Amount: {_money(payment.amount_due)}"
        ),
        priority=priority,
        user_id=user_id,
        contract_id=payment.contract_id,
        payment_id=payment.payment_id,
        created_at=created_at,
        metadata={
            "days_remaining": days_remaining,
            "due_date": payment.due_date.isoformat(),
            "amount_due": str(payment.amount_due),
        },
    )


def overdue(
    user_id: str,
    payment: Payment,
    contract: Contract,
    state: PaymentState,
    priority: NotificationPriority,
    created_at: datetime,
) -> Notification:
    return Notification(
        category=NotificationCategory.OVERDUE,
        title="Rent overdue",
        message=(
            f"Rent for property {contract.property_id} (tenant {contract.tenant_id}) is "
            f"{state.days_late} day(s) late. Total due: {_money(state.total_due)}"
        ),
        priority=priority,
        user_id=user_id,
        contract_id=payment.contract_id,
        payment_id=payment.payment_id,
        created_at=created_at,
        metadata=_accrual_metadata(payment, state),
    )


def overdue_reminder(
    user_id: str,
    payment: Payment,
    contract: Contract,
    state: PaymentState,
    reminder_number: int,
    created_at: datetime,
) -> Notification:
    return Notification(
        category=NotificationCategory.OVERDUE_REMINDER,
        title=f"Payment reminder - {state.days_late} days",
        message=(
            f"Reminder: rent for property {contract.property_id} is still unpaid. "
            f"Total due: {_money(state.total_due)}"
        ),
        priority=NotificationPriority.HIGH,
        user_id=user_id,
        contract_id=payment.contract_id,
        payment_id=payment.payment_id,
        created_at=created_at,
        metadata={**_accrual_metadata(payment, state), "reminder_number": reminder_number},
    )


def contract_expiring(
    user_id: str,
    contract: Contract,
    days_remaining: int,
    priority: NotificationPriority,
    created_at: datetime,
) -> Notification:
    return Notification(
        category=NotificationCategory.CONTRACT_EXPIRING,
        title="Contract expiring",
        message=(
            f"The contract for property {contract.property_id} ends in {days_remaining} day(s) "
            f"on {contract.end_date.isoformat()}. Tenant: {contract.tenant_id}"
        ),
        priority=priority,
        user_id=user_id,
        contract_id=contract.contract_id,
        created_at=created_at,
        metadata={
            "days_remaining": days_remaining,
            "end_date": contract.end_date.isoformat(),
            "monthly_rent": str(contract.monthly_rent),
        },
    )


def _accrual_metadata(payment: Payment, state: PaymentState) -> dict:
    return {
        "days_late": state.days_late,
        "due_date": payment.due_date.isoformat(),
        "amount_due": str(payment.amount_due),
        "interest": str(state.interest),
        "penalty": str(state.penalty),
        "total_due": str(state.total_due),
    }
