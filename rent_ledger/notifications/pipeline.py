"""Batch scan that emits deduplicated, capped notifications and flushes them.

One run walks every active policy through four scans (due soon, overdue,
contract expiring, reminder cadence) and then hands pending notifications to
the delivery channel. Failures tied to one record or one user are recorded in
the summary and the run moves on. A failing run-level query (rates, policies,
the refresh page walk) or an unreachable store aborts it.

Dedup checks are read-then-write against the notification table, so every
(user, payment-or-contract) key is processed sequentially within a run and
runs themselves are serialized through the store's run lock.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Callable

from rent_ledger.accrual.resolver import PaymentStateResolver, resolve_payment
from rent_ledger.config import ScanConfig
from rent_ledger.delivery.base import DeliveryChannel
from rent_ledger.exceptions import RentLedgerError, StoreError, StoreUnavailableError
from rent_ledger.models import (
    Contract,
    ContractStatus,
    NotificationCategory,
    NotificationPolicy,
    NotificationStatus,
    Payment,
    PaymentStatus,
    ProcessingSummary,
    RateConfiguration,
)
from rent_ledger.notifications import messages
from rent_ledger.notifications.policy import (
    contract_expiry_window,
    due_soon_priority,
    due_soon_window,
    expiring_priority,
    overdue_cooldown_start,
    overdue_priority,
    reminder_due,
)
from rent_ledger.store.base import DataStore, NotificationFilter

logger = logging.getLogger(__name__)

UNDISMISSED_EXCLUDE = (NotificationStatus.CANCELLED,)


class NotificationScanPipeline:
    """Run the periodic notification scan against a store.

    Parameters
    ----------
    store : DataStore
        Record store holding contracts, payments, notifications and policies.
    delivery : DeliveryChannel
        Outbound channel used by the flush step.
    config : ScanConfig | None
        Batch size, worker count and cadence options.
    clock : Callable[[], datetime] | None
        Source of the current time (``datetime.now`` by default).
    """

    def __init__(
        self,
        store: DataStore,
        delivery: DeliveryChannel,
        config: ScanConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.delivery = delivery
        self.config = config or ScanConfig()
        self.config.validate()
        self._clock = clock or datetime.now
        self.resolver = PaymentStateResolver(
            max_workers=self.config.max_workers,
            page_size=self.config.page_size,
        )
        self._contracts: dict[str, Contract] = {}

    def _effective_now(self, reference_date: date | None) -> datetime:
        """Current time, moved onto ``reference_date`` when one is given."""
        now = self._clock()
        if reference_date is None:
            return now
        return datetime.combine(reference_date, now.time())

    def run(self, reference_date: date | None = None) -> ProcessingSummary:
        """Execute one scan.

        Parameters
        ----------
        reference_date : date | None
            Day to scan as "today"; defaults to the clock's date. Use it to
            re-run a missed day.

        Returns
        -------
        ProcessingSummary
            Counts per category, deliveries and non-fatal errors. ``skipped``
            is set when another run holds the lock, ``aborted`` when the
            store became unreachable or a run-level query failed.
        """
        now = self._effective_now(reference_date)
        summary = ProcessingSummary(reference_date=now.date(), started_at=now)
        run_id = str(uuid.uuid4())
        self._contracts = {}

        try:
            locked = self.store.acquire_run_lock(run_id)
        except StoreError as e:
            return self._abort(summary, e)

        if not locked:
            logger.warning("Another scan is running; skipping run for %s", summary.reference_date)
            summary.skipped = True
            summary.finished_at = self._clock()
            return summary

        logger.info("Starting notification scan", extra={"run_id": run_id, "reference_date": str(now.date())})
        try:
            self._run_steps(summary, now)
        except StoreError as e:
            self._abort(summary, e)
        finally:
            try:
                self.store.release_run_lock(run_id)
            except StoreError:
                logger.exception("Could not release run lock %s", run_id)

        summary.finished_at = self._clock()
        logger.info(
            "Scan finished: created=%d delivered=%d errors=%d",
            summary.total_created,
            summary.delivered,
            len(summary.errors),
            extra={"run_id": run_id},
        )
        return summary

    def _abort(self, summary: ProcessingSummary, error: StoreError) -> ProcessingSummary:
        logger.error("Data store failed, aborting scan: %s", error)
        summary.reset_progress()
        summary.aborted = True
        summary.record_error("run", str(error))
        summary.finished_at = self._clock()
        return summary

    def _run_steps(self, summary: ProcessingSummary, now: datetime) -> None:
        today = now.date()
        rates = self.store.get_rate_configuration()

        if self.config.refresh_payment_status:
            refresh = self.resolver.refresh(self.store, rates, today, now=now)
            summary.payments_refreshed = refresh.refreshed
            summary.payments_overdue = refresh.overdue
            for payment_id, message in refresh.errors:
                summary.record_error("refresh", message, record_id=payment_id)

        policies = self.store.list_active_policies()
        logger.debug("Scanning %d active policies", len(policies))

        steps = (
            ("due-soon", lambda p: p.notify_due_soon, self._scan_due_soon),
            ("overdue", lambda p: p.notify_overdue, self._scan_overdue),
            ("contract-expiring", lambda p: p.notify_contract_expiring, self._scan_contract_expiring),
            ("overdue-reminder", lambda p: p.notify_overdue, self._scan_reminder_cadence),
        )
        for stage, enabled, scan in steps:
            for policy in policies:
                if not enabled(policy):
                    continue
                try:
                    scan(policy, rates, now, summary)
                except StoreUnavailableError:
                    raise
                except RentLedgerError as e:
                    logger.warning("%s scan failed for user %s: %s", stage, policy.user_id, e, exc_info=True)
                    summary.record_error(stage, str(e), user_id=policy.user_id)

        self._flush(summary, now)

    def _for_each(
        self,
        stage: str,
        policy: NotificationPolicy,
        records: list,
        record_id: Callable[[object], str],
        handle: Callable[[object], None],
        summary: ProcessingSummary,
    ) -> None:
        """Apply ``handle`` to each record, recording per-record failures."""
        for record in records:
            try:
                handle(record)
            except StoreUnavailableError:
                raise
            except RentLedgerError as e:
                logger.warning(
                    "%s: skipping %s for user %s: %s", stage, record_id(record), policy.user_id, e
                )
                summary.record_error(stage, str(e), user_id=policy.user_id, record_id=record_id(record))

    def _contract(self, contract_id: str) -> Contract:
        """Contract lookup, cached for the run."""
        if contract_id not in self._contracts:
            self._contracts[contract_id] = self.store.get_contract(contract_id)
        return self._contracts[contract_id]

    def _exists(self, query: NotificationFilter) -> bool:
        return self.store.count_notifications(query) > 0

    def _scan_due_soon(
        self, policy: NotificationPolicy, rates: RateConfiguration, now: datetime, summary: ProcessingSummary
    ) -> None:
        today = now.date()
        start, end = due_soon_window(policy, today)
        payments = self.store.list_payments(status=PaymentStatus.PENDING, due_from=start, due_to=end)

        def handle(payment: Payment) -> None:
            existing = NotificationFilter(
                user_id=policy.user_id,
                category=NotificationCategory.DUE_SOON,
                payment_id=payment.payment_id,
                exclude_statuses=UNDISMISSED_EXCLUDE,
            )
            if self._exists(existing):
                return
            contract = self._contract(payment.contract_id)
            if contract.status == ContractStatus.CLOSED:
                return

            days_remaining = (payment.due_date - today).days
            priority = due_soon_priority(days_remaining, self.config.due_soon_high_within_days)
            self.store.add_notification(
                messages.due_soon(policy.user_id, payment, contract, days_remaining, priority, now)
            )
            summary.created[NotificationCategory.DUE_SOON] += 1

        self._for_each("due-soon", policy, payments, lambda p: p.payment_id, handle, summary)

    def _overdue_payments(self, today: date) -> list[Payment]:
        return self.store.list_payments(status=PaymentStatus.OVERDUE, due_to=today - timedelta(days=1))

    def _scan_overdue(
        self, policy: NotificationPolicy, rates: RateConfiguration, now: datetime, summary: ProcessingSummary
    ) -> None:
        today = now.date()
        cooldown_start = overdue_cooldown_start(policy, now)

        def handle(payment: Payment) -> None:
            pair = NotificationFilter(
                user_id=policy.user_id,
                category=NotificationCategory.OVERDUE,
                payment_id=payment.payment_id,
            )
            recent = NotificationFilter(
                user_id=pair.user_id,
                category=pair.category,
                payment_id=pair.payment_id,
                created_since=cooldown_start,
            )
            if self._exists(recent):
                return
            if self.store.count_notifications(pair) >= policy.max_reminders:
                return

            contract = self._contract(payment.contract_id)
            state = resolve_payment(payment, rates, today)
            priority = overdue_priority(state.days_late, self.config.overdue_urgent_after_days)
            self.store.add_notification(
                messages.overdue(policy.user_id, payment, contract, state, priority, now)
            )
            summary.created[NotificationCategory.OVERDUE] += 1

        self._for_each("overdue", policy, self._overdue_payments(today), lambda p: p.payment_id, handle, summary)

    def _scan_contract_expiring(
        self, policy: NotificationPolicy, rates: RateConfiguration, now: datetime, summary: ProcessingSummary
    ) -> None:
        today = now.date()
        start, end = contract_expiry_window(policy, today)
        contracts = self.store.list_contracts(status=ContractStatus.ACTIVE, end_from=start, end_to=end)

        def handle(contract: Contract) -> None:
            existing = NotificationFilter(
                user_id=policy.user_id,
                category=NotificationCategory.CONTRACT_EXPIRING,
                contract_id=contract.contract_id,
                exclude_statuses=UNDISMISSED_EXCLUDE,
            )
            if self._exists(existing):
                return

            days_remaining = (contract.end_date - today).days
            priority = expiring_priority(days_remaining, self.config.expiring_high_within_days)
            self.store.add_notification(
                messages.contract_expiring(policy.user_id, contract, days_remaining, priority, now)
            )
            summary.created[NotificationCategory.CONTRACT_EXPIRING] += 1

        self._for_each("contract-expiring", policy, contracts, lambda c: c.contract_id, handle, summary)

    def _scan_reminder_cadence(
        self, policy: NotificationPolicy, rates: RateConfiguration, now: datetime, summary: ProcessingSummary
    ) -> None:
        today = now.date()

        def handle(payment: Payment) -> None:
            days_late = (today - payment.due_date).days
            sent = self.store.list_notifications(
                NotificationFilter(
                    user_id=policy.user_id,
                    category=NotificationCategory.OVERDUE_REMINDER,
                    payment_id=payment.payment_id,
                )
            )
            if any(n.metadata.get("days_late") == days_late for n in sent):
                return
            if not reminder_due(
                days_late,
                policy.reminder_interval_days,
                len(sent),
                policy.max_reminders,
                catch_up=self.config.reminder_catch_up,
            ):
                return

            contract = self._contract(payment.contract_id)
            state = resolve_payment(payment, rates, today)
            self.store.add_notification(
                messages.overdue_reminder(policy.user_id, payment, contract, state, len(sent) + 1, now)
            )
            summary.created[NotificationCategory.OVERDUE_REMINDER] += 1

        self._for_each(
            "overdue-reminder", policy, self._overdue_payments(today), lambda p: p.payment_id, handle, summary
        )

    def _flush(self, summary: ProcessingSummary, now: datetime) -> None:
        """Hand the oldest pending notifications to the delivery channel."""
        try:
            pending = self.store.list_notifications(
                NotificationFilter(status=NotificationStatus.PENDING),
                limit=self.config.batch_size,
            )
        except StoreUnavailableError:
            raise
        except StoreError as e:
            logger.warning("Could not list pending notifications: %s", e)
            summary.record_error("delivery", str(e))
            return

        for notification in pending:
            notification_id = notification.notification_id
            try:
                accepted = self.delivery.mark_delivered(notification)
            except Exception as e:  # any channel failure leaves the record pending
                logger.warning("Delivery of %s failed: %s", notification_id, e, exc_info=True)
                summary.record_error("delivery", str(e), user_id=notification.user_id, record_id=notification_id)
                continue

            if not accepted:
                logger.warning("Delivery of %s was rejected; will retry next run", notification_id)
                summary.record_error(
                    "delivery", "delivery rejected", user_id=notification.user_id, record_id=notification_id
                )
                continue

            try:
                notification.transition_to(NotificationStatus.SENT, now)
                self.store.update_notification(notification)
            except StoreUnavailableError:
                raise
            except RentLedgerError as e:
                logger.warning("Could not mark %s as sent: %s", notification_id, e)
                summary.record_error("delivery", str(e), user_id=notification.user_id, record_id=notification_id)
                continue
            summary.delivered += 1

        logger.info("Delivered %d of %d pending notifications", summary.delivered, len(pending))
