"""Data stores backing the rental ledger."""

from rent_ledger.store.base import DataStore, NotificationFilter
from rent_ledger.store.memory import InMemoryStore
from rent_ledger.store.postgres import PostgresStore

__all__ = ["DataStore", "InMemoryStore", "NotificationFilter", "PostgresStore"]
