"""Enumeration types for rental ledger entities."""

from enum import Enum


class ContractStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CLOSED = "closed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


class NotificationCategory(str, Enum):
    DUE_SOON = "due-soon"
    OVERDUE = "overdue"
    CONTRACT_EXPIRING = "contract-expiring"
    OVERDUE_REMINDER = "overdue-reminder"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    READ = "read"
    CANCELLED = "cancelled"
