"""Tests for the notification scan pipeline."""

from datetime import date, datetime
from unittest.mock import MagicMock, patch

import pytest

from rent_ledger.config import EngineConfig, ScanConfig
from rent_ledger.delivery import StubDelivery
from rent_ledger.engine import run_scan
from rent_ledger.exceptions import DeliveryError, EntityNotFoundError, StoreError, StoreUnavailableError
from rent_ledger.ledger import create_contract
from rent_ledger.models import (
    ContractStatus,
    NotificationCategory,
    NotificationPolicy,
    NotificationPriority,
    NotificationStatus,
)
from rent_ledger.notifications.pipeline import NotificationScanPipeline
from rent_ledger.store import NotificationFilter


def _scan(store, day, clock, delivery=None, **config):
    return run_scan(store, delivery or StubDelivery(), reference_date=day, config=ScanConfig(**config), clock=clock)


def _notifications(store, category=None, **kwargs):
    return store.list_notifications(NotificationFilter(category=category, **kwargs))


class TestDueSoonScan:
    """Tests for due-soon notifications."""

    @pytest.fixture
    def contract(self, store, make_contract):
        contract = make_contract(start_date=date(2024, 3, 1), end_date=date(2025, 2, 28), due_day=17)
        create_contract(store, contract)
        return contract

    def test_creates_due_soon(self, store, policy, contract, clock) -> None:
        """A pending payment inside the window gets one notice."""
        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.created[NotificationCategory.DUE_SOON] == 1
        assert summary.total_created == 1
        assert summary.delivered == 1
        assert summary.succeeded

        [notice] = _notifications(store, NotificationCategory.DUE_SOON)
        assert notice.user_id == policy.user_id
        assert notice.contract_id == contract.contract_id
        assert notice.priority == NotificationPriority.MEDIUM
        assert notice.metadata["days_remaining"] == 2
        assert notice.status == NotificationStatus.SENT
        assert notice.sent_at == datetime(2024, 3, 15, 9, 0)

    def test_high_priority_within_one_day(self, store, policy, contract, clock) -> None:
        """One day or less before the due date is high priority."""
        _scan(store, date(2024, 3, 16), clock)

        [notice] = _notifications(store, NotificationCategory.DUE_SOON)
        assert notice.priority == NotificationPriority.HIGH

    def test_rerun_is_idempotent(self, store, policy, contract, clock) -> None:
        """Running twice on the same day creates nothing new."""
        _scan(store, date(2024, 3, 15), clock)
        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.total_created == 0
        assert summary.delivered == 0
        assert len(_notifications(store, NotificationCategory.DUE_SOON)) == 1

    def test_next_day_does_not_repeat(self, store, policy, contract, clock) -> None:
        """An undismissed notice blocks new ones on later days too."""
        _scan(store, date(2024, 3, 15), clock)
        summary = _scan(store, date(2024, 3, 16), clock)

        assert summary.created[NotificationCategory.DUE_SOON] == 0

    def test_dismissed_notice_allows_a_new_one(self, store, policy, contract, clock) -> None:
        """A cancelled notice no longer counts for dedup."""
        _scan(store, date(2024, 3, 15), clock)
        [notice] = _notifications(store, NotificationCategory.DUE_SOON)
        notice.transition_to(NotificationStatus.CANCELLED, datetime(2024, 3, 15, 10, 0))
        store.update_notification(notice)

        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.created[NotificationCategory.DUE_SOON] == 1

    def test_outside_window(self, store, policy, contract, clock) -> None:
        """Payments due after the window are ignored."""
        summary = _scan(store, date(2024, 3, 13), clock)

        assert summary.created[NotificationCategory.DUE_SOON] == 0

    def test_skips_closed_contract(self, store, policy, contract, clock) -> None:
        """Payments of closed contracts are not announced."""
        stored = store.get_contract(contract.contract_id)
        stored.status = ContractStatus.CLOSED
        store.update_contract(stored)

        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.created[NotificationCategory.DUE_SOON] == 0

    def test_disabled_in_policy(self, store, owner_id, contract, clock) -> None:
        """Users who opted out get nothing."""
        store.upsert_policy(NotificationPolicy(user_id=owner_id, notify_due_soon=False))

        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.total_created == 0

    def test_every_active_user_is_notified(self, store, policy, contract, clock) -> None:
        """Each active policy gets its own notice."""
        store.upsert_policy(NotificationPolicy(user_id="owner-test-002"))
        store.upsert_policy(NotificationPolicy(user_id="owner-test-003", active=False))

        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.created[NotificationCategory.DUE_SOON] == 2
        users = {n.user_id for n in _notifications(store, NotificationCategory.DUE_SOON)}
        assert users == {policy.user_id, "owner-test-002"}


class TestOverdueScan:
    """Tests for overdue notifications."""

    @pytest.fixture
    def contract(self, store, make_contract):
        contract = make_contract(due_day=1)
        create_contract(store, contract)
        return contract

    def test_creates_overdue(self, store, policy, contract, clock) -> None:
        """A payment past grace gets a high-priority overdue notice."""
        summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.payments_overdue == 1
        assert summary.created[NotificationCategory.OVERDUE] == 1
        [notice] = _notifications(store, NotificationCategory.OVERDUE)
        assert notice.priority == NotificationPriority.HIGH
        assert notice.metadata["days_late"] == 19
        assert notice.metadata["total_due"] == "1537.00"  # 1500 + 30 penalty + 7.00 interest

    def test_urgent_after_thirty_days(self, store, policy, contract, clock) -> None:
        """More than 30 days late is urgent."""
        _scan(store, date(2024, 2, 5), clock)

        [notice] = _notifications(store, NotificationCategory.OVERDUE)
        assert notice.priority == NotificationPriority.URGENT
        assert notice.metadata["days_late"] == 35

    def test_requires_overdue_status(self, store, policy, contract, clock) -> None:
        """Without the status refresh the payment is still pending."""
        summary = _scan(store, date(2024, 1, 20), clock, refresh_payment_status=False)

        assert summary.created[NotificationCategory.OVERDUE] == 0

    def test_rerun_is_idempotent(self, store, policy, contract, clock) -> None:
        """Same-day re-runs create nothing new."""
        _scan(store, date(2024, 1, 20), clock)
        summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.total_created == 0

    def test_cooldown_follows_reminder_interval(self, store, policy, contract, clock) -> None:
        """A new overdue notice waits reminder_interval_days days."""
        _scan(store, date(2024, 1, 20), clock)
        blocked = _scan(store, date(2024, 1, 26), clock)
        allowed = _scan(store, date(2024, 1, 27), clock)

        assert blocked.created[NotificationCategory.OVERDUE] == 0
        assert allowed.created[NotificationCategory.OVERDUE] == 1
        assert len(_notifications(store, NotificationCategory.OVERDUE)) == 2

    def test_capped_at_max_reminders(self, store, owner_id, contract, clock) -> None:
        """No more than max_reminders overdue notices per payment."""
        store.upsert_policy(NotificationPolicy(user_id=owner_id, reminder_interval_days=1, max_reminders=2))

        for day in range(20, 25):
            _scan(store, date(2024, 1, day), clock)

        assert len(_notifications(store, NotificationCategory.OVERDUE)) == 2
        assert len(_notifications(store, NotificationCategory.OVERDUE_REMINDER)) == 2

    def test_per_record_failure_does_not_stop_the_run(self, store, policy, contract, clock) -> None:
        """A broken record is reported and the run completes."""
        with patch.object(store, "get_contract", side_effect=EntityNotFoundError("contract gone")):
            summary = _scan(store, date(2024, 1, 20), clock)

        assert not summary.aborted
        assert summary.created[NotificationCategory.OVERDUE] == 0
        [error] = summary.errors
        assert error.stage == "overdue"
        assert error.user_id == policy.user_id
        assert error.record_id == store.list_payments(status=None)[0].payment_id
        assert error.message == "contract gone"


class TestContractExpiringScan:
    """Tests for contract-expiring notifications."""

    @pytest.fixture
    def contract(self, store, make_contract):
        contract = make_contract(start_date=date(2024, 3, 1), end_date=date(2024, 4, 10), due_day=28)
        create_contract(store, contract)
        return contract

    def test_creates_expiring(self, store, policy, contract, clock) -> None:
        """Contracts ending within the window get one notice."""
        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.created[NotificationCategory.CONTRACT_EXPIRING] == 1
        [notice] = _notifications(store, NotificationCategory.CONTRACT_EXPIRING)
        assert notice.contract_id == contract.contract_id
        assert notice.payment_id is None
        assert notice.priority == NotificationPriority.MEDIUM
        assert notice.metadata["days_remaining"] == 26

    def test_high_priority_within_a_week(self, store, policy, contract, clock) -> None:
        """Seven days or less before the end is high priority."""
        _scan(store, date(2024, 4, 5), clock)

        [notice] = _notifications(store, NotificationCategory.CONTRACT_EXPIRING)
        assert notice.priority == NotificationPriority.HIGH

    def test_at_most_one_per_contract(self, store, policy, contract, clock) -> None:
        """Later runs do not repeat the notice."""
        _scan(store, date(2024, 3, 15), clock)
        _scan(store, date(2024, 3, 16), clock)
        summary = _scan(store, date(2024, 4, 5), clock)

        assert summary.created[NotificationCategory.CONTRACT_EXPIRING] == 0
        assert len(_notifications(store, NotificationCategory.CONTRACT_EXPIRING)) == 1

    def test_outside_window(self, store, policy, contract, clock) -> None:
        """Contracts ending after the window are ignored."""
        summary = _scan(store, date(2024, 3, 10), clock)

        assert summary.created[NotificationCategory.CONTRACT_EXPIRING] == 0

    def test_closed_contract_is_ignored(self, store, policy, contract, clock) -> None:
        """Only active contracts are considered."""
        stored = store.get_contract(contract.contract_id)
        stored.status = ContractStatus.CLOSED
        store.update_contract(stored)

        summary = _scan(store, date(2024, 3, 15), clock)

        assert summary.created[NotificationCategory.CONTRACT_EXPIRING] == 0


class TestReminderCadence:
    """Tests for overdue reminders on a fixed cadence."""

    @pytest.fixture
    def contract(self, store, make_contract):
        contract = make_contract(due_day=1, end_date=date(2024, 1, 31))
        create_contract(store, contract)
        return contract

    def _reminders(self, store):
        return _notifications(store, NotificationCategory.OVERDUE_REMINDER)

    def test_fires_on_exact_multiples(self, store, policy, contract, clock) -> None:
        """Reminders go out on day 7 and day 14, not in between."""
        _scan(store, date(2024, 1, 8), clock)
        _scan(store, date(2024, 1, 9), clock)
        _scan(store, date(2024, 1, 15), clock)

        reminders = self._reminders(store)
        assert [r.metadata["days_late"] for r in reminders] == [7, 14]
        assert [r.metadata["reminder_number"] for r in reminders] == [1, 2]
        assert all(r.priority == NotificationPriority.HIGH for r in reminders)

    def test_same_day_rerun(self, store, policy, contract, clock) -> None:
        """A reminder is not repeated for the same lateness."""
        _scan(store, date(2024, 1, 8), clock)
        summary = _scan(store, date(2024, 1, 8), clock)

        assert summary.created[NotificationCategory.OVERDUE_REMINDER] == 0
        assert len(self._reminders(store)) == 1

    def test_missed_day_is_skipped_by_default(self, store, policy, contract, clock) -> None:
        """Without catch-up a missed cadence day is not made up."""
        summary = _scan(store, date(2024, 1, 17), clock)

        assert summary.created[NotificationCategory.OVERDUE_REMINDER] == 0

    def test_catch_up(self, store, policy, contract, clock) -> None:
        """With catch-up, owed reminders fire one per run until current."""
        first = _scan(store, date(2024, 1, 17), clock, reminder_catch_up=True)
        again = _scan(store, date(2024, 1, 17), clock, reminder_catch_up=True)
        second = _scan(store, date(2024, 1, 18), clock, reminder_catch_up=True)
        done = _scan(store, date(2024, 1, 19), clock, reminder_catch_up=True)

        assert first.created[NotificationCategory.OVERDUE_REMINDER] == 1
        assert again.created[NotificationCategory.OVERDUE_REMINDER] == 0
        assert second.created[NotificationCategory.OVERDUE_REMINDER] == 1
        assert done.created[NotificationCategory.OVERDUE_REMINDER] == 0

    def test_capped(self, store, owner_id, contract, clock) -> None:
        """Reminders stop at max_reminders."""
        store.upsert_policy(NotificationPolicy(user_id=owner_id, max_reminders=2))

        for day in (8, 15, 22):
            _scan(store, date(2024, 1, day), clock)

        assert len(self._reminders(store)) == 2

    def test_disabled_with_overdue(self, store, owner_id, contract, clock) -> None:
        """notify_overdue also switches reminders off."""
        store.upsert_policy(NotificationPolicy(user_id=owner_id, notify_overdue=False))

        summary = _scan(store, date(2024, 1, 8), clock)

        assert summary.created[NotificationCategory.OVERDUE] == 0
        assert summary.created[NotificationCategory.OVERDUE_REMINDER] == 0


class TestDeliveryFlush:
    """Tests for the delivery step."""

    @pytest.fixture
    def contracts(self, store, make_contract):
        contracts = [
            make_contract(start_date=date(2024, 3, 1), end_date=date(2025, 2, 28), due_day=17) for _ in range(3)
        ]
        for contract in contracts:
            create_contract(store, contract)
        return contracts

    def test_batch_size_caps_deliveries(self, store, policy, contracts, clock) -> None:
        """Only batch_size notices are flushed per run; the rest wait."""
        first = _scan(store, date(2024, 3, 15), clock, batch_size=2)
        second = _scan(store, date(2024, 3, 15), clock, batch_size=2)

        assert first.created[NotificationCategory.DUE_SOON] == 3
        assert first.delivered == 2
        assert second.total_created == 0
        assert second.delivered == 1
        assert _notifications(store, status=NotificationStatus.PENDING) == []

    def test_channel_error_leaves_pending(self, store, policy, contracts, clock) -> None:
        """A raising channel is recorded and the notices retry next run."""
        delivery = MagicMock()
        delivery.mark_delivered.side_effect = DeliveryError("broker down")

        summary = _scan(store, date(2024, 3, 15), clock, delivery=delivery)

        assert summary.delivered == 0
        assert [e.stage for e in summary.errors] == ["delivery"] * 3
        assert not summary.aborted
        assert len(_notifications(store, status=NotificationStatus.PENDING)) == 3

        retry = _scan(store, date(2024, 3, 15), clock)
        assert retry.delivered == 3

    def test_rejected_delivery_leaves_pending(self, store, policy, contracts, clock) -> None:
        """A False return is treated like a failure."""
        delivery = MagicMock()
        delivery.mark_delivered.return_value = False

        summary = _scan(store, date(2024, 3, 15), clock, delivery=delivery)

        assert summary.delivered == 0
        assert len(summary.errors) == 3
        assert len(_notifications(store, status=NotificationStatus.PENDING)) == 3

    def test_partial_failure(self, store, policy, contracts, clock) -> None:
        """Only the failing notice stays pending."""
        delivery = StubDelivery()
        pipeline = NotificationScanPipeline(store, delivery, clock=clock)
        # create the notices without flushing them
        with patch.object(pipeline, "_flush"):
            pipeline.run(date(2024, 3, 15))
        failing = _notifications(store, status=NotificationStatus.PENDING)[0]
        delivery.fail_ids = {failing.notification_id}

        summary = pipeline.run(date(2024, 3, 15))

        assert summary.delivered == 2
        assert store.get_notification(failing.notification_id).status == NotificationStatus.PENDING
        assert failing.notification_id not in delivery.delivered


class TestRunControl:
    """Tests for run locking, aborts and the entry point."""

    def test_skipped_when_locked(self, store, policy, make_contract, clock) -> None:
        """A run that cannot take the lock does nothing."""
        create_contract(store, make_contract(due_day=1))
        assert store.acquire_run_lock("other-run")

        summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.skipped
        assert not summary.succeeded
        assert summary.total_created == 0
        assert store.notifications == {}

    def test_lock_released_after_run(self, store, policy, clock) -> None:
        """The run lock is free once the scan returns."""
        _scan(store, date(2024, 1, 20), clock)

        assert store.acquire_run_lock("next-run")

    def test_unavailable_store_aborts(self, store, policy, make_contract, clock) -> None:
        """An unreachable store aborts with zero progress reported."""
        create_contract(store, make_contract(due_day=1))

        with patch.object(store, "list_active_policies", side_effect=StoreUnavailableError("connection lost")):
            summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.aborted
        assert not summary.succeeded
        assert summary.payments_refreshed == 0
        assert summary.payments_overdue == 0
        assert summary.total_created == 0
        assert summary.errors[0].stage == "run"
        assert summary.finished_at is not None
        assert store.acquire_run_lock("next-run")

    def test_unavailable_on_lock_aborts(self, store, clock) -> None:
        """Failing to reach the store for the lock also aborts."""
        with patch.object(store, "acquire_run_lock", side_effect=StoreUnavailableError("down")):
            summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.aborted
        assert not summary.skipped

    def test_failed_run_query_aborts(self, store, policy, make_contract, clock) -> None:
        """A failing rates query returns an aborted summary instead of raising."""
        create_contract(store, make_contract(due_day=1))

        with patch.object(store, "get_rate_configuration", side_effect=StoreError("statement timed out")):
            summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.aborted
        assert summary.errors[0].stage == "run"
        assert "statement timed out" in summary.errors[0].message
        assert store.notifications == {}
        assert store.acquire_run_lock("next-run")

    def test_failed_flush_listing_keeps_created(self, store, policy, make_contract, clock) -> None:
        """The notices written before a failed flush query are still reported."""
        create_contract(store, make_contract(due_day=1))
        list_notifications = store.list_notifications

        def failing_pending(query, **kwargs):
            if query.status == NotificationStatus.PENDING:
                raise StoreError("statement timed out")
            return list_notifications(query, **kwargs)

        with patch.object(store, "list_notifications", side_effect=failing_pending):
            summary = _scan(store, date(2024, 1, 20), clock)

        assert not summary.aborted
        assert summary.created[NotificationCategory.OVERDUE] == 1
        assert summary.delivered == 0
        assert [e.stage for e in summary.errors] == ["delivery"]
        assert len(_notifications(store, status=NotificationStatus.PENDING)) == summary.total_created

    def test_defaults_to_clock_date(self, store, policy) -> None:
        """Without a reference date the clock's date is used."""
        summary = run_scan(store, StubDelivery(), clock=lambda: datetime(2024, 1, 20, 6, 30))

        assert summary.reference_date == date(2024, 1, 20)
        assert summary.started_at == datetime(2024, 1, 20, 6, 30)

    def test_accepts_engine_config(self, store, policy, make_contract, clock) -> None:
        """The full engine configuration can be passed directly."""
        create_contract(store, make_contract(due_day=1))
        config = EngineConfig(scan=ScanConfig(refresh_payment_status=False))

        summary = run_scan(store, StubDelivery(), reference_date=date(2024, 1, 20), config=config, clock=clock)

        assert summary.payments_overdue == 0
        assert summary.total_created == 0

    def test_empty_store(self, store, clock) -> None:
        """No policies and no data is a clean no-op."""
        summary = _scan(store, date(2024, 1, 20), clock)

        assert summary.succeeded
        assert summary.total_created == 0
        assert summary.delivered == 0
