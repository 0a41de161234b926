#!/usr/bin/env python3
"""Run the daily accrual and notification scan.

Meant to be called from cron once a day. Reads settings from the
environment (see ``EngineConfig.from_env``); flags override the store and
delivery targets. Exit status is 1 when the run aborted, 0 otherwise.

Examples::

    python scripts/run_scan.py
    python scripts/run_scan.py --date 2024-03-10 --delivery stub
    python scripts/run_scan.py --in-memory --contracts 20
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rent_ledger.config import EngineConfig
from rent_ledger.delivery import DeliveryChannel, KafkaDelivery, StubDelivery
from rent_ledger.engine import run_scan
from rent_ledger.exceptions import RentLedgerError
from rent_ledger.generators import PortfolioGenerator
from rent_ledger.ledger import create_contract
from rent_ledger.logging import setup_logging
from rent_ledger.models import ProcessingSummary
from rent_ledger.store import DataStore, InMemoryStore, PostgresStore

logger = logging.getLogger(__name__)


def build_demo_store(contracts: int, seed: int | None, today: date) -> InMemoryStore:
    """In-memory store filled with a generated portfolio."""
    generator = PortfolioGenerator(seed=seed)
    store = InMemoryStore(rate_configuration=generator.generate_rates())
    for policy in generator.generate_policies():
        store.upsert_policy(policy)
    for contract in generator.generate_batch(contracts, today=today):
        create_contract(store, contract)
    return store


def print_summary(summary: ProcessingSummary) -> None:
    """Log a human-readable run summary."""
    logger.info("=" * 60)
    logger.info("SCAN SUMMARY (%s)", summary.reference_date.isoformat())
    logger.info("=" * 60)
    if summary.skipped:
        logger.info("  Skipped: another scan holds the run lock")
        return
    logger.info("  Payments refreshed:  %d (%d overdue)", summary.payments_refreshed, summary.payments_overdue)
    for category, count in summary.created.items():
        logger.info("  %-20s %d", category.value + ":", count)
    logger.info("  Delivered:           %d", summary.delivered)
    logger.info("  Errors:              %d", len(summary.errors))
    for error in summary.errors[:20]:
        logger.info("    [%s] %s %s", error.stage, error.record_id or error.user_id or "", error.message)
    if summary.aborted:
        logger.info("  Run ABORTED: data store unreachable")
    logger.info("=" * 60)


def main() -> None:
    """Main entry point."""
    config = EngineConfig.from_env()

    parser = argparse.ArgumentParser(description="Run the rent accrual and notification scan")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date to scan as today (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=config.postgres.connection_string,
        help="PostgreSQL connection string",
    )
    parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Scan a generated in-memory portfolio instead of PostgreSQL",
    )
    parser.add_argument(
        "--contracts",
        type=int,
        default=20,
        help="Contracts to generate with --in-memory (default: 20)",
    )
    parser.add_argument(
        "--delivery",
        type=str,
        choices=["kafka", "stub"],
        default="kafka",
        help="Delivery channel (default: kafka)",
    )
    parser.add_argument(
        "--kafka-bootstrap",
        type=str,
        default=config.kafka.bootstrap_servers,
        help="Kafka bootstrap servers",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["standard", "json"],
        default=config.log_format,
        help="Log output format",
    )
    args = parser.parse_args()

    setup_logging(config.log_level, args.log_format)
    today = args.date or date.today()

    delivery: DeliveryChannel
    if args.delivery == "kafka":
        config.kafka.bootstrap_servers = args.kafka_bootstrap
        delivery = KafkaDelivery(config.kafka)
    else:
        delivery = StubDelivery()

    store: DataStore
    try:
        if args.in_memory:
            store = build_demo_store(args.contracts, config.seed, today)
        else:
            store = PostgresStore(
                args.postgres_url,
                statement_timeout_ms=config.postgres.statement_timeout_ms,
                connect_timeout=config.postgres.connect_timeout,
            )
        summary = run_scan(store, delivery, reference_date=args.date, config=config)
    except RentLedgerError as e:
        logger.error("Scan could not start: %s", e)
        sys.exit(1)
    finally:
        if isinstance(delivery, KafkaDelivery):
            delivery.close()

    if isinstance(store, PostgresStore):
        store.close()

    print_summary(summary)
    if summary.aborted:
        sys.exit(1)


if __name__ == "__main__":
    main()
