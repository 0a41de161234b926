"""rent-ledger: rent accrual and notification engine."""

from rent_ledger.config import EngineConfig, KafkaConfig, PostgresConfig, ScanConfig
from rent_ledger.engine import run_scan
from rent_ledger.exceptions import RentLedgerError

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "KafkaConfig",
    "PostgresConfig",
    "RentLedgerError",
    "ScanConfig",
    "run_scan",
]
