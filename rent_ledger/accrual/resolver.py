"""Resolve a stored payment's status and owed amount at a reference date."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime

from rent_ledger.accrual.calculator import compute_accrual
from rent_ledger.exceptions import RentLedgerError, StoreUnavailableError
from rent_ledger.models import Payment, PaymentState, PaymentStatus, RateConfiguration
from rent_ledger.store.base import DataStore

logger = logging.getLogger(__name__)


def resolve_payment(payment: Payment, rates: RateConfiguration, reference_date: date) -> PaymentState:
    """Return the payment's status and amounts as of ``reference_date``.

    Paid and cancelled payments are frozen: their stored amounts are
    returned unchanged. Otherwise a payment is overdue once the grace
    period has passed.
    """
    if payment.is_settled:
        return PaymentState(
            status=payment.status,
            days_late=0,
            interest=payment.interest_amount,
            penalty=payment.penalty_amount,
            total_due=payment.total_due,
        )

    days_late = max(0, (reference_date - payment.due_date).days)
    accrual = compute_accrual(
        payment.amount_due,
        days_late,
        rates.monthly_interest_rate,
        rates.penalty_rate,
        rates.grace_days,
    )
    status = PaymentStatus.OVERDUE if days_late > rates.grace_days else PaymentStatus.PENDING

    return PaymentState(
        status=status,
        days_late=days_late,
        interest=accrual.interest,
        penalty=accrual.penalty,
        total_due=accrual.total,
    )


@dataclass
class RefreshResult:
    """Counters and per-payment failures from one refresh pass."""

    refreshed: int = 0
    overdue: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)  # (payment_id, message)


class PaymentStateResolver:
    """Apply accrual to every open payment that has come due.

    Resolution is pure, so pages of payments are resolved in a thread pool;
    writes back to the store stay sequential.
    """

    OPEN_STATUSES = (PaymentStatus.PENDING, PaymentStatus.OVERDUE)

    def __init__(self, max_workers: int = 4, page_size: int = 500) -> None:
        self.max_workers = max_workers
        self.page_size = page_size

    def refresh(
        self,
        store: DataStore,
        rates: RateConfiguration,
        reference_date: date,
        now: datetime | None = None,
    ) -> RefreshResult:
        """Update status and accrual of open payments due on or before ``reference_date``.

        Raises
        ------
        StoreUnavailableError
            If the store cannot be reached. Other per-payment failures are
            collected in the result.
        """
        result = RefreshResult()
        now = now or datetime.now()
        seen: set[str] = set()

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for status in self.OPEN_STATUSES:
                offset = 0
                while True:
                    page = store.list_payments(
                        status=status,
                        due_to=reference_date,
                        offset=offset,
                        limit=self.page_size,
                    )
                    if not page:
                        break
                    states = executor.map(
                        lambda p: self._safe_resolve(p, rates, reference_date), page
                    )
                    moved = 0
                    for payment, state in zip(page, states):
                        # pending payments that just became overdue show up again
                        if payment.payment_id in seen:
                            continue
                        seen.add(payment.payment_id)
                        if self._apply(store, payment, state, now, result):
                            moved += 1
                    if len(page) < self.page_size:
                        break
                    # Payments whose stored status changed left this filter
                    offset += len(page) - moved

        logger.info(
            "Refreshed %d payments (%d overdue) as of %s",
            result.refreshed,
            result.overdue,
            reference_date.isoformat(),
        )
        return result

    @staticmethod
    def _safe_resolve(
        payment: Payment, rates: RateConfiguration, reference_date: date
    ) -> PaymentState | RentLedgerError:
        try:
            return resolve_payment(payment, rates, reference_date)
        except RentLedgerError as e:
            return e

    @staticmethod
    def _apply(
        store: DataStore,
        payment: Payment,
        state: PaymentState | RentLedgerError,
        now: datetime,
        result: RefreshResult,
    ) -> bool:
        """Write back a changed state; True when the stored status moved."""
        if isinstance(state, RentLedgerError):
            logger.warning("Could not resolve payment %s: %s", payment.payment_id, state)
            result.errors.append((payment.payment_id, str(state)))
            return False

        if state.status == PaymentStatus.OVERDUE:
            result.overdue += 1

        unchanged = (
            payment.status == state.status
            and payment.interest_amount == state.interest
            and payment.penalty_amount == state.penalty
        )
        if unchanged:
            return False

        moved = payment.status != state.status

        payment.status = state.status
        payment.interest_amount = state.interest
        payment.penalty_amount = state.penalty
        payment.updated_at = now
        try:
            store.update_payment(payment)
        except StoreUnavailableError:
            raise
        except RentLedgerError as e:
            logger.warning("Could not update payment %s: %s", payment.payment_id, e)
            result.errors.append((payment.payment_id, str(e)))
            return False
        result.refreshed += 1
        return moved
