"""Data store interface consumed by the accrual and notification engine."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from rent_ledger.models import (
    Contract,
    ContractStatus,
    Notification,
    NotificationCategory,
    NotificationPolicy,
    NotificationStatus,
    Payment,
    PaymentDraft,
    PaymentStatus,
    RateConfiguration,
)


@dataclass(frozen=True)
class NotificationFilter:
    """Equality and range filter over notifications.

    ``None`` fields are ignored. ``exclude_statuses`` drops records in any of
    the given statuses; ``created_since`` is inclusive.
    """

    user_id: str | None = None
    category: NotificationCategory | None = None
    status: NotificationStatus | None = None
    payment_id: str | None = None
    contract_id: str | None = None
    created_since: datetime | None = None
    exclude_statuses: tuple[NotificationStatus, ...] = ()

    def matches(self, notification: Notification) -> bool:
        if self.user_id is not None and notification.user_id != self.user_id:
            return False
        if self.category is not None and notification.category != self.category:
            return False
        if self.status is not None and notification.status != self.status:
            return False
        if self.payment_id is not None and notification.payment_id != self.payment_id:
            return False
        if self.contract_id is not None and notification.contract_id != self.contract_id:
            return False
        if self.created_since is not None and (
            notification.created_at is None or notification.created_at < self.created_since
        ):
            return False
        return notification.status not in self.exclude_statuses


class DataStore(Protocol):
    """Typed record store for contracts, payments, notifications and policies.

    Implementations signal failures with ``StoreError`` for a failed
    operation, ``StoreUnavailableError`` when the backend cannot be reached
    and ``EntityNotFoundError`` for a missing record. "No matching record" is
    always an empty result, never an exception.
    """

    # Contracts
    def add_contract(self, contract: Contract) -> None: ...

    def get_contract(self, contract_id: str) -> Contract: ...

    def update_contract(self, contract: Contract) -> None: ...

    def list_contracts(
        self,
        *,
        status: ContractStatus | None = None,
        end_from: date | None = None,
        end_to: date | None = None,
    ) -> list[Contract]: ...

    def add_contract_with_schedule(self, contract: Contract, drafts: list[PaymentDraft]) -> list[Payment]:
        """Store a contract and its payments all at once or not at all."""
        ...

    # Payments
    def add_payment(self, draft: PaymentDraft) -> Payment: ...

    def get_payment(self, payment_id: str) -> Payment: ...

    def update_payment(self, payment: Payment) -> None: ...

    def list_payments(
        self,
        *,
        status: PaymentStatus | None = None,
        contract_id: str | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Payment]: ...

    # Notifications
    def add_notification(self, notification: Notification) -> Notification: ...

    def get_notification(self, notification_id: str) -> Notification: ...

    def update_notification(self, notification: Notification) -> None: ...

    def list_notifications(
        self,
        query: NotificationFilter,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Notification]: ...

    def count_notifications(self, query: NotificationFilter) -> int: ...

    # Configuration
    def get_policy(self, user_id: str) -> NotificationPolicy: ...

    def upsert_policy(self, policy: NotificationPolicy) -> None: ...

    def list_active_policies(self) -> list[NotificationPolicy]: ...

    def get_rate_configuration(self, user_id: str | None = None) -> RateConfiguration: ...

    # Run coordination
    def acquire_run_lock(self, owner: str) -> bool: ...

    def release_run_lock(self, owner: str) -> None: ...
