"""In-memory data store with referential integrity."""

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from rent_ledger.exceptions import EntityNotFoundError, ReferentialIntegrityError, StoreError
from rent_ledger.models import (
    Contract,
    ContractStatus,
    Notification,
    NotificationPolicy,
    Payment,
    PaymentDraft,
    PaymentStatus,
    RateConfiguration,
)
from rent_ledger.store.base import NotificationFilter


@dataclass
class InMemoryStore:
    """In-memory store for ledger entities with relationship tracking.

    Records are copied on the way in and out, so callers mutating a returned
    object do not change stored state until they call ``update_*``.
    """

    contracts: dict[str, Contract] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)
    notifications: dict[str, Notification] = field(default_factory=dict)
    policies: dict[str, NotificationPolicy] = field(default_factory=dict)
    rate_configuration: RateConfiguration = field(default_factory=RateConfiguration)
    user_rate_configurations: dict[str, RateConfiguration] = field(default_factory=dict)

    # Relationship indexes
    _contract_payments: dict[str, list[str]] = field(default_factory=dict)
    _run_lock: threading.Lock = field(default_factory=threading.Lock)
    _run_lock_owner: str | None = None

    def add_contract(self, contract: Contract) -> None:
        """Add a contract to the store."""
        if contract.created_at is None:
            contract.created_at = datetime.now()
        self.contracts[contract.contract_id] = replace(contract)
        self._contract_payments.setdefault(contract.contract_id, [])

    def get_contract(self, contract_id: str) -> Contract:
        """Get a contract by id."""
        if contract_id not in self.contracts:
            raise EntityNotFoundError(f"Contract {contract_id} not found")
        return replace(self.contracts[contract_id])

    def update_contract(self, contract: Contract) -> None:
        """Replace a stored contract."""
        if contract.contract_id not in self.contracts:
            raise EntityNotFoundError(f"Contract {contract.contract_id} not found")
        self.contracts[contract.contract_id] = replace(contract)

    def list_contracts(
        self,
        *,
        status: ContractStatus | None = None,
        end_from: date | None = None,
        end_to: date | None = None,
    ) -> list[Contract]:
        """List contracts, ordered by end date."""
        matches = [
            c
            for c in self.contracts.values()
            if (status is None or c.status == status)
            and (end_from is None or c.end_date >= end_from)
            and (end_to is None or c.end_date <= end_to)
        ]
        return [replace(c) for c in sorted(matches, key=lambda c: (c.end_date, c.contract_id))]

    def add_contract_with_schedule(self, contract: Contract, drafts: list[PaymentDraft]) -> list[Payment]:
        """Add a contract and its payments; a failure leaves neither behind."""
        if contract.contract_id in self.contracts:
            raise StoreError(f"Contract {contract.contract_id} already exists")
        self.add_contract(contract)
        payments: list[Payment] = []
        try:
            for draft in drafts:
                payments.append(self.add_payment(draft))
        except Exception:
            for payment in payments:
                del self.payments[payment.payment_id]
            del self.contracts[contract.contract_id]
            del self._contract_payments[contract.contract_id]
            raise
        return payments

    def add_payment(self, draft: PaymentDraft) -> Payment:
        """Store a payment draft and return the stored payment."""
        if draft.contract_id not in self.contracts:
            raise ReferentialIntegrityError(f"Contract {draft.contract_id} not found")

        payment = Payment.from_draft(str(uuid.uuid4()), draft)
        payment.created_at = datetime.now()
        self.payments[payment.payment_id] = payment
        self._contract_payments[draft.contract_id].append(payment.payment_id)
        return replace(payment)

    def get_payment(self, payment_id: str) -> Payment:
        """Get a payment by id."""
        if payment_id not in self.payments:
            raise EntityNotFoundError(f"Payment {payment_id} not found")
        return replace(self.payments[payment_id])

    def update_payment(self, payment: Payment) -> None:
        """Replace a stored payment."""
        if payment.payment_id not in self.payments:
            raise EntityNotFoundError(f"Payment {payment.payment_id} not found")
        self.payments[payment.payment_id] = replace(payment)

    def list_payments(
        self,
        *,
        status: PaymentStatus | None = None,
        contract_id: str | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Payment]:
        """List payments ordered by due date, then id."""
        if contract_id is not None:
            candidates = [self.payments[pid] for pid in self._contract_payments.get(contract_id, [])]
        else:
            candidates = list(self.payments.values())

        matches = sorted(
            (
                p
                for p in candidates
                if (status is None or p.status == status)
                and (due_from is None or p.due_date >= due_from)
                and (due_to is None or p.due_date <= due_to)
            ),
            key=lambda p: (p.due_date, p.payment_id),
        )
        end = None if limit is None else offset + limit
        return [replace(p) for p in matches[offset:end]]

    def add_notification(self, notification: Notification) -> Notification:
        """Store a notification, assigning its id."""
        if notification.payment_id is not None and notification.payment_id not in self.payments:
            raise ReferentialIntegrityError(f"Payment {notification.payment_id} not found")
        if notification.contract_id is not None and notification.contract_id not in self.contracts:
            raise ReferentialIntegrityError(f"Contract {notification.contract_id} not found")

        stored = replace(notification, notification_id=str(uuid.uuid4()), metadata=dict(notification.metadata))
        if stored.created_at is None:
            stored.created_at = datetime.now()
        self.notifications[stored.notification_id] = stored
        return replace(stored)

    def get_notification(self, notification_id: str) -> Notification:
        """Get a notification by id."""
        if notification_id not in self.notifications:
            raise EntityNotFoundError(f"Notification {notification_id} not found")
        return replace(self.notifications[notification_id])

    def update_notification(self, notification: Notification) -> None:
        """Replace a stored notification."""
        if notification.notification_id not in self.notifications:
            raise EntityNotFoundError(f"Notification {notification.notification_id} not found")
        self.notifications[notification.notification_id] = replace(notification)

    def list_notifications(
        self,
        query: NotificationFilter,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Notification]:
        """List matching notifications, oldest first."""
        matches = sorted(
            (n for n in self.notifications.values() if query.matches(n)),
            key=lambda n: n.created_at or datetime.min,
        )
        end = None if limit is None else offset + limit
        return [replace(n) for n in matches[offset:end]]

    def count_notifications(self, query: NotificationFilter) -> int:
        """Count matching notifications."""
        return sum(1 for n in self.notifications.values() if query.matches(n))

    def get_policy(self, user_id: str) -> NotificationPolicy:
        """Get a user's policy, creating the default one on first access."""
        if user_id not in self.policies:
            self.policies[user_id] = NotificationPolicy(user_id=user_id, created_at=datetime.now())
        return replace(self.policies[user_id])

    def upsert_policy(self, policy: NotificationPolicy) -> None:
        """Insert or replace the policy for ``policy.user_id``."""
        policy.validate()
        policy.updated_at = datetime.now()
        self.policies[policy.user_id] = replace(policy)

    def list_active_policies(self) -> list[NotificationPolicy]:
        """List active policies ordered by user id."""
        return [replace(p) for _, p in sorted(self.policies.items()) if p.active]

    def get_rate_configuration(self, user_id: str | None = None) -> RateConfiguration:
        """Get a user's rates, falling back to the operator-wide configuration."""
        if user_id is not None and user_id in self.user_rate_configurations:
            return replace(self.user_rate_configurations[user_id])
        return replace(self.rate_configuration)

    def acquire_run_lock(self, owner: str) -> bool:
        """Take the scan lock without blocking."""
        if not self._run_lock.acquire(blocking=False):
            return False
        self._run_lock_owner = owner
        return True

    def release_run_lock(self, owner: str) -> None:
        """Release the scan lock if ``owner`` holds it."""
        if self._run_lock_owner == owner:
            self._run_lock_owner = None
            self._run_lock.release()

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "contracts": len(self.contracts),
            "payments": len(self.payments),
            "notifications": len(self.notifications),
            "policies": len(self.policies),
        }
