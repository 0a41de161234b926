"""Shared serialization utilities for delivery payloads."""

from dataclasses import fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from rent_ledger.models import Notification


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    """Convert a notification to a JSON-ready dict.

    Uses ``dataclasses.fields()`` + ``getattr`` rather than ``asdict()``;
    the only nested value is the metadata dict, handled by
    ``serialize_value``.
    """
    return {f.name: serialize_value(getattr(notification, f.name)) for f in fields(notification)}


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value
