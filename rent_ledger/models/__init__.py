"""Domain models for the rental ledger."""

from rent_ledger.models.contract import Contract
from rent_ledger.models.enums import (
    ContractStatus,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    PaymentStatus,
)
from rent_ledger.models.notification import Notification, NotificationPolicy
from rent_ledger.models.payment import Payment, PaymentDraft
from rent_ledger.models.rates import RateConfiguration
from rent_ledger.models.summary import (
    AccrualResult,
    PaymentState,
    ProcessingSummary,
    ProfitabilityResult,
    RentalStatistics,
    ScanError,
)

__all__ = [
    "AccrualResult",
    "Contract",
    "ContractStatus",
    "Notification",
    "NotificationCategory",
    "NotificationPolicy",
    "NotificationPriority",
    "NotificationStatus",
    "Payment",
    "PaymentDraft",
    "PaymentState",
    "PaymentStatus",
    "ProcessingSummary",
    "ProfitabilityResult",
    "RateConfiguration",
    "RentalStatistics",
    "ScanError",
]
