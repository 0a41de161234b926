"""Entry point for the scheduled accrual and notification run."""

from datetime import date, datetime
from typing import Callable

from rent_ledger.config import EngineConfig, ScanConfig
from rent_ledger.delivery.base import DeliveryChannel
from rent_ledger.models import ProcessingSummary
from rent_ledger.notifications.pipeline import NotificationScanPipeline
from rent_ledger.store.base import DataStore


def run_scan(
    store: DataStore,
    delivery: DeliveryChannel,
    reference_date: date | None = None,
    config: EngineConfig | ScanConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ProcessingSummary:
    """Refresh payment accrual, emit due notifications and flush them.

    Parameters
    ----------
    store : DataStore
        Store holding contracts, payments, notifications and policies.
    delivery : DeliveryChannel
        Channel that receives pending notifications.
    reference_date : date | None
        Day treated as "today" (defaults to the current date); pass a past
        date to re-run a missed day.
    config : EngineConfig | ScanConfig | None
        Scan settings, or the full engine configuration.
    clock : Callable[[], datetime] | None
        Time source, mainly for tests.

    Returns
    -------
    ProcessingSummary
        What the run created, delivered and failed on.
    """
    if isinstance(config, EngineConfig):
        scan_config = config.scan
    else:
        scan_config = config or ScanConfig()

    pipeline = NotificationScanPipeline(store, delivery, scan_config, clock=clock)
    return pipeline.run(reference_date)
