"""Rental contract model."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from rent_ledger.models.enums import ContractStatus


@dataclass
class Contract:
    """Lease agreement between a tenant and a property owner."""

    contract_id: str
    property_id: str
    tenant_id: str
    monthly_rent: Decimal
    start_date: date
    end_date: date
    due_day: int  # 1-31, clamped to month end when scheduling
    status: ContractStatus = ContractStatus.ACTIVE
    owner_id: str | None = None
    deposit: Decimal | None = None
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE
