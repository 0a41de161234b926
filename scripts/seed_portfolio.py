#!/usr/bin/env python3
"""Load a synthetic rental portfolio into PostgreSQL.

Generates contracts (with their full payment schedules) and one
notification policy per owner, so a local scan has something to work on.
"""

import argparse
import logging
import sys
import time
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rent_ledger.config import EngineConfig
from rent_ledger.exceptions import RentLedgerError
from rent_ledger.generators import PortfolioGenerator
from rent_ledger.ledger import create_contract
from rent_ledger.logging import setup_logging
from rent_ledger.store import DataStore, PostgresStore

logger = logging.getLogger(__name__)


def seed_portfolio(
    store: DataStore,
    contracts: int,
    owners: int,
    seed: int | None,
    today: date,
) -> dict[str, int]:
    """Generate a portfolio and write it to ``store``.

    Returns
    -------
    dict[str, int]
        Counts of contracts, payments and policies written.
    """
    generator = PortfolioGenerator(seed=seed, owners=owners)
    counts = {"contracts": 0, "payments": 0, "policies": 0}

    for policy in generator.generate_policies():
        store.upsert_policy(policy)
        counts["policies"] += 1

    t0 = time.perf_counter()
    for contract in generator.generate_batch(contracts, today=today):
        payments = create_contract(store, contract)
        counts["contracts"] += 1
        counts["payments"] += len(payments)
    logger.info(
        "Loaded %d contracts (%d payments) in %.1fs",
        counts["contracts"],
        counts["payments"],
        time.perf_counter() - t0,
    )
    return counts


def main() -> None:
    """Main entry point."""
    config = EngineConfig.from_env()

    parser = argparse.ArgumentParser(description="Seed PostgreSQL with a synthetic rental portfolio")
    parser.add_argument(
        "--contracts",
        type=int,
        default=50,
        help="Number of contracts to generate (default: 50)",
    )
    parser.add_argument(
        "--owners",
        type=int,
        default=3,
        help="Number of owners the contracts are spread over (default: 3)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=config.seed if config.seed is not None else 42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=config.postgres.connection_string,
        help="PostgreSQL connection string",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Day every generated contract is running on (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create tables before loading",
    )
    args = parser.parse_args()

    setup_logging(config.log_level, config.log_format)

    logger.info("=" * 60)
    logger.info("rent-ledger - Seed Portfolio")
    logger.info("=" * 60)
    logger.info("Contracts: %d", args.contracts)
    logger.info("Owners: %d", args.owners)
    logger.info("Seed: %d", args.seed)
    logger.info("=" * 60)

    try:
        with PostgresStore(
            args.postgres_url,
            statement_timeout_ms=config.postgres.statement_timeout_ms,
            connect_timeout=config.postgres.connect_timeout,
        ) as store:
            if args.create_schema:
                store.create_schema()
            counts = seed_portfolio(store, args.contracts, args.owners, args.seed, args.date or date.today())
    except RentLedgerError as e:
        logger.error("Seeding failed: %s", e)
        sys.exit(1)

    for name, count in counts.items():
        logger.info("  %-12s %d", name, count)


if __name__ == "__main__":
    main()
