"""PostgreSQL-backed data store using psycopg 3."""

import logging
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from rent_ledger.config import PostgresConfig
from rent_ledger.exceptions import (
    EntityNotFoundError,
    ReferentialIntegrityError,
    StoreError,
    StoreUnavailableError,
)
from rent_ledger.models import (
    Contract,
    ContractStatus,
    Notification,
    NotificationCategory,
    NotificationPolicy,
    NotificationPriority,
    NotificationStatus,
    Payment,
    PaymentDraft,
    PaymentStatus,
    RateConfiguration,
)
from rent_ledger.store.base import NotificationFilter

logger = logging.getLogger(__name__)

# Key for pg_try_advisory_lock; one scan per database at a time.
SCAN_LOCK_KEY = 72_160_331

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS contracts (
    contract_id TEXT PRIMARY KEY,
    property_id TEXT NOT NULL,
    tenant_id TEXT NOT NULL,
    owner_id TEXT,
    monthly_rent NUMERIC(12, 2) NOT NULL CHECK (monthly_rent > 0),
    deposit NUMERIC(12, 2) CHECK (deposit >= 0),
    start_date DATE NOT NULL,
    end_date DATE NOT NULL,
    due_day SMALLINT NOT NULL CHECK (due_day BETWEEN 1 AND 31),
    status TEXT NOT NULL DEFAULT 'active',
    notes TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMP,
    CHECK (end_date > start_date)
);

CREATE TABLE IF NOT EXISTS payments (
    payment_id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    contract_id TEXT NOT NULL REFERENCES contracts (contract_id) ON DELETE CASCADE,
    reference_month DATE NOT NULL,
    amount_due NUMERIC(12, 2) NOT NULL CHECK (amount_due > 0),
    due_date DATE NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    interest_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
    penalty_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
    paid_amount NUMERIC(12, 2),
    paid_date DATE,
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMP,
    UNIQUE (contract_id, reference_month)
);
CREATE INDEX IF NOT EXISTS idx_payments_status_due ON payments (status, due_date);

CREATE TABLE IF NOT EXISTS notifications (
    notification_id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    category TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    priority TEXT NOT NULL,
    user_id TEXT NOT NULL,
    contract_id TEXT REFERENCES contracts (contract_id) ON DELETE CASCADE,
    payment_id TEXT REFERENCES payments (payment_id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    sent_at TIMESTAMP,
    read_at TIMESTAMP,
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb
);
CREATE INDEX IF NOT EXISTS idx_notifications_dedup ON notifications (user_id, category, payment_id, contract_id);
CREATE INDEX IF NOT EXISTS idx_notifications_status_created ON notifications (status, created_at);

CREATE TABLE IF NOT EXISTS notification_policies (
    user_id TEXT PRIMARY KEY,
    days_before_due INTEGER NOT NULL DEFAULT 3,
    notify_due_soon BOOLEAN NOT NULL DEFAULT TRUE,
    notify_overdue BOOLEAN NOT NULL DEFAULT TRUE,
    reminder_interval_days INTEGER NOT NULL DEFAULT 7,
    max_reminders INTEGER NOT NULL DEFAULT 3,
    days_before_contract_end INTEGER NOT NULL DEFAULT 30,
    notify_contract_expiring BOOLEAN NOT NULL DEFAULT TRUE,
    active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS rate_configurations (
    id SERIAL PRIMARY KEY,
    user_id TEXT UNIQUE,
    monthly_interest_rate NUMERIC(5, 4) NOT NULL DEFAULT 0.01 CHECK (monthly_interest_rate BETWEEN 0 AND 1),
    penalty_rate NUMERIC(5, 4) NOT NULL DEFAULT 0.02 CHECK (penalty_rate BETWEEN 0 AND 1),
    grace_days INTEGER NOT NULL DEFAULT 5 CHECK (grace_days BETWEEN 0 AND 30),
    commission_rate NUMERIC(5, 4) NOT NULL DEFAULT 0.10 CHECK (commission_rate BETWEEN 0 AND 1),
    updated_at TIMESTAMP
);
"""

CONTRACT_COLUMNS = (
    "contract_id, property_id, tenant_id, owner_id, monthly_rent, deposit, "
    "start_date, end_date, due_day, status, notes, created_at, updated_at"
)
PAYMENT_COLUMNS = (
    "payment_id, contract_id, reference_month, amount_due, due_date, status, "
    "interest_amount, penalty_amount, paid_amount, paid_date, created_at, updated_at"
)
NOTIFICATION_COLUMNS = (
    "notification_id, category, title, message, priority, user_id, contract_id, "
    "payment_id, status, created_at, sent_at, read_at, metadata"
)
POLICY_COLUMNS = (
    "user_id, days_before_due, notify_due_soon, notify_overdue, reminder_interval_days, "
    "max_reminders, days_before_contract_end, notify_contract_expiring, active, "
    "created_at, updated_at"
)


def _contract_from_row(row: dict[str, Any]) -> Contract:
    return Contract(**{**row, "status": ContractStatus(row["status"])})


def _payment_from_row(row: dict[str, Any]) -> Payment:
    return Payment(**{**row, "status": PaymentStatus(row["status"])})


def _notification_from_row(row: dict[str, Any]) -> Notification:
    return Notification(
        **{
            **row,
            "category": NotificationCategory(row["category"]),
            "priority": NotificationPriority(row["priority"]),
            "status": NotificationStatus(row["status"]),
            "metadata": row["metadata"] or {},
        }
    )


def _notification_where(query: NotificationFilter) -> tuple[str, list[Any]]:
    """Build a WHERE clause and parameters for a notification filter."""
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in (
        ("user_id", query.user_id),
        ("category", query.category.value if query.category else None),
        ("status", query.status.value if query.status else None),
        ("payment_id", query.payment_id),
        ("contract_id", query.contract_id),
    ):
        if value is not None:
            clauses.append(f"{column} = %s")
            params.append(value)
    if query.created_since is not None:
        clauses.append("created_at >= %s")
        params.append(query.created_since)
    if query.exclude_statuses:
        clauses.append("status <> ALL(%s)")
        params.append([s.value for s in query.exclude_statuses])
    return (" WHERE " + " AND ".join(clauses)) if clauses else "", params


class PostgresStore:
    """Data store over PostgreSQL.

    Every statement runs under ``statement_timeout`` and connections under
    ``connect_timeout``. Connection-level failures surface as
    ``StoreUnavailableError``; a failing or timed-out statement as
    ``StoreError``.

    Parameters
    ----------
    config : PostgresConfig | str
        Connection configuration or a connection string.
    statement_timeout_ms : int | None
        Override for the per-statement timeout.
    connect_timeout : int | None
        Override for the connection timeout, in seconds.
    """

    def __init__(
        self,
        config: PostgresConfig | str,
        statement_timeout_ms: int | None = None,
        connect_timeout: int | None = None,
    ) -> None:
        if isinstance(config, str):
            self.conninfo = config
            self.connect_timeout = connect_timeout or PostgresConfig.connect_timeout
            self.statement_timeout_ms = statement_timeout_ms or PostgresConfig.statement_timeout_ms
        else:
            self.conninfo = config.connection_string
            self.connect_timeout = connect_timeout or config.connect_timeout
            self.statement_timeout_ms = statement_timeout_ms or config.statement_timeout_ms
        self._conn: psycopg.Connection | None = None

    @property
    def connection(self) -> psycopg.Connection:
        """Open the connection lazily."""
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg.connect(
                    self.conninfo,
                    autocommit=True,
                    row_factory=dict_row,
                    connect_timeout=self.connect_timeout,
                    options=f"-c statement_timeout={self.statement_timeout_ms}",
                )
            except psycopg.OperationalError as e:
                raise StoreUnavailableError(f"Cannot connect to PostgreSQL: {e}") from e
        return self._conn

    def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "PostgresStore":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _execute(self, sql: str, params: list[Any] | tuple[Any, ...] | None = None) -> list[dict[str, Any]]:
        """Run one statement, translating driver errors.

        Without ``params`` the text may hold several statements (schema DDL).
        """
        try:
            with self.connection.cursor() as cur:
                cur.execute(sql, params)
                return cur.fetchall() if cur.description else []
        except psycopg.errors.ForeignKeyViolation as e:
            raise ReferentialIntegrityError(str(e)) from e
        except psycopg.errors.QueryCanceled as e:
            raise StoreError(f"Statement timed out: {e}") from e
        except psycopg.OperationalError as e:
            raise StoreUnavailableError(f"PostgreSQL unavailable: {e}") from e
        except psycopg.Error as e:
            raise StoreError(str(e)) from e

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        self._execute(SCHEMA_SQL)
        logger.info("Schema ready")

    # Contracts
    def add_contract(self, contract: Contract) -> None:
        """Insert a contract."""
        self._execute(
            f"INSERT INTO contracts ({CONTRACT_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()), %s)",
            (
                contract.contract_id,
                contract.property_id,
                contract.tenant_id,
                contract.owner_id,
                contract.monthly_rent,
                contract.deposit,
                contract.start_date,
                contract.end_date,
                contract.due_day,
                contract.status.value,
                contract.notes,
                contract.created_at,
                contract.updated_at,
            ),
        )

    def get_contract(self, contract_id: str) -> Contract:
        """Get a contract by id."""
        rows = self._execute(f"SELECT {CONTRACT_COLUMNS} FROM contracts WHERE contract_id = %s", (contract_id,))
        if not rows:
            raise EntityNotFoundError(f"Contract {contract_id} not found")
        return _contract_from_row(rows[0])

    def update_contract(self, contract: Contract) -> None:
        """Update a contract's mutable fields."""
        rows = self._execute(
            "UPDATE contracts SET monthly_rent = %s, deposit = %s, end_date = %s, due_day = %s, "
            "status = %s, notes = %s, updated_at = %s WHERE contract_id = %s RETURNING contract_id",
            (
                contract.monthly_rent,
                contract.deposit,
                contract.end_date,
                contract.due_day,
                contract.status.value,
                contract.notes,
                contract.updated_at,
                contract.contract_id,
            ),
        )
        if not rows:
            raise EntityNotFoundError(f"Contract {contract.contract_id} not found")

    def list_contracts(self, *, status=None, end_from=None, end_to=None) -> list[Contract]:
        """List contracts ordered by end date."""
        clauses, params = [], []
        if status is not None:
            clauses.append("status = %s")
            params.append(status.value)
        if end_from is not None:
            clauses.append("end_date >= %s")
            params.append(end_from)
        if end_to is not None:
            clauses.append("end_date <= %s")
            params.append(end_to)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        rows = self._execute(
            f"SELECT {CONTRACT_COLUMNS} FROM contracts{where} ORDER BY end_date, contract_id", params
        )
        return [_contract_from_row(r) for r in rows]

    def add_contract_with_schedule(self, contract: Contract, drafts: list[PaymentDraft]) -> list[Payment]:
        """Insert a contract and its payments in one transaction."""
        try:
            with self.connection.transaction():
                self.add_contract(contract)
                return [self.add_payment(draft) for draft in drafts]
        except psycopg.OperationalError as e:
            raise StoreUnavailableError(f"PostgreSQL unavailable: {e}") from e
        except psycopg.Error as e:
            raise StoreError(str(e)) from e

    # Payments
    def add_payment(self, draft: PaymentDraft) -> Payment:
        """Insert a payment draft, returning the stored payment."""
        rows = self._execute(
            "INSERT INTO payments (contract_id, reference_month, amount_due, due_date, status, "
            "interest_amount, penalty_amount) VALUES (%s, %s, %s, %s, %s, %s, %s) "
            f"RETURNING {PAYMENT_COLUMNS}",
            (
                draft.contract_id,
                draft.reference_month,
                draft.amount_due,
                draft.due_date,
                draft.status.value,
                draft.interest_amount,
                draft.penalty_amount,
            ),
        )
        return _payment_from_row(rows[0])

    def get_payment(self, payment_id: str) -> Payment:
        """Get a payment by id."""
        rows = self._execute(f"SELECT {PAYMENT_COLUMNS} FROM payments WHERE payment_id = %s", (payment_id,))
        if not rows:
            raise EntityNotFoundError(f"Payment {payment_id} not found")
        return _payment_from_row(rows[0])

    def update_payment(self, payment: Payment) -> None:
        """Update a payment's status and amounts."""
        rows = self._execute(
            "UPDATE payments SET status = %s, interest_amount = %s, penalty_amount = %s, "
            "paid_amount = %s, paid_date = %s, updated_at = %s WHERE payment_id = %s RETURNING payment_id",
            (
                payment.status.value,
                payment.interest_amount,
                payment.penalty_amount,
                payment.paid_amount,
                payment.paid_date,
                payment.updated_at,
                payment.payment_id,
            ),
        )
        if not rows:
            raise EntityNotFoundError(f"Payment {payment.payment_id} not found")

    def list_payments(
        self, *, status=None, contract_id=None, due_from=None, due_to=None, offset=0, limit=None
    ) -> list[Payment]:
        """List payments ordered by due date, then id."""
        clauses, params = [], []
        if status is not None:
            clauses.append("status = %s")
            params.append(status.value)
        if contract_id is not None:
            clauses.append("contract_id = %s")
            params.append(contract_id)
        if due_from is not None:
            clauses.append("due_date >= %s")
            params.append(due_from)
        if due_to is not None:
            clauses.append("due_date <= %s")
            params.append(due_to)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        sql = f"SELECT {PAYMENT_COLUMNS} FROM payments{where} ORDER BY due_date, payment_id OFFSET %s"
        params.append(offset)
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        return [_payment_from_row(r) for r in self._execute(sql, params)]

    # Notifications
    def add_notification(self, notification: Notification) -> Notification:
        """Insert a notification, returning it with its id."""
        rows = self._execute(
            "INSERT INTO notifications (category, title, message, priority, user_id, contract_id, "
            "payment_id, status, created_at, sent_at, read_at, metadata) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()), %s, %s, %s) "
            f"RETURNING {NOTIFICATION_COLUMNS}",
            (
                notification.category.value,
                notification.title,
                notification.message,
                notification.priority.value,
                notification.user_id,
                notification.contract_id,
                notification.payment_id,
                notification.status.value,
                notification.created_at,
                notification.sent_at,
                notification.read_at,
                Jsonb(notification.metadata),
            ),
        )
        return _notification_from_row(rows[0])

    def get_notification(self, notification_id: str) -> Notification:
        """Get a notification by id."""
        rows = self._execute(
            f"SELECT {NOTIFICATION_COLUMNS} FROM notifications WHERE notification_id = %s", (notification_id,)
        )
        if not rows:
            raise EntityNotFoundError(f"Notification {notification_id} not found")
        return _notification_from_row(rows[0])

    def update_notification(self, notification: Notification) -> None:
        """Update a notification's status and timestamps."""
        rows = self._execute(
            "UPDATE notifications SET status = %s, sent_at = %s, read_at = %s "
            "WHERE notification_id = %s RETURNING notification_id",
            (
                notification.status.value,
                notification.sent_at,
                notification.read_at,
                notification.notification_id,
            ),
        )
        if not rows:
            raise EntityNotFoundError(f"Notification {notification.notification_id} not found")

    def list_notifications(self, query: NotificationFilter, *, offset=0, limit=None) -> list[Notification]:
        """List matching notifications, oldest first."""
        where, params = _notification_where(query)
        sql = f"SELECT {NOTIFICATION_COLUMNS} FROM notifications{where} ORDER BY created_at OFFSET %s"
        params.append(offset)
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        return [_notification_from_row(r) for r in self._execute(sql, params)]

    def count_notifications(self, query: NotificationFilter) -> int:
        """Count matching notifications."""
        where, params = _notification_where(query)
        rows = self._execute(f"SELECT COUNT(*) AS n FROM notifications{where}", params)
        return int(rows[0]["n"])

    # Configuration
    def get_policy(self, user_id: str) -> NotificationPolicy:
        """Get a user's policy, creating the default one on first access."""
        self._execute(
            "INSERT INTO notification_policies (user_id) VALUES (%s) ON CONFLICT (user_id) DO NOTHING",
            (user_id,),
        )
        rows = self._execute(
            f"SELECT {POLICY_COLUMNS} FROM notification_policies WHERE user_id = %s", (user_id,)
        )
        return NotificationPolicy(**rows[0])

    def upsert_policy(self, policy: NotificationPolicy) -> None:
        """Insert or replace the policy for ``policy.user_id``."""
        policy.validate()
        self._execute(
            "INSERT INTO notification_policies (user_id, days_before_due, notify_due_soon, notify_overdue, "
            "reminder_interval_days, max_reminders, days_before_contract_end, notify_contract_expiring, active) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (user_id) DO UPDATE SET "
            "days_before_due = EXCLUDED.days_before_due, "
            "notify_due_soon = EXCLUDED.notify_due_soon, "
            "notify_overdue = EXCLUDED.notify_overdue, "
            "reminder_interval_days = EXCLUDED.reminder_interval_days, "
            "max_reminders = EXCLUDED.max_reminders, "
            "days_before_contract_end = EXCLUDED.days_before_contract_end, "
            "notify_contract_expiring = EXCLUDED.notify_contract_expiring, "
            "active = EXCLUDED.active, updated_at = NOW()",
            (
                policy.user_id,
                policy.days_before_due,
                policy.notify_due_soon,
                policy.notify_overdue,
                policy.reminder_interval_days,
                policy.max_reminders,
                policy.days_before_contract_end,
                policy.notify_contract_expiring,
                policy.active,
            ),
        )

    def list_active_policies(self) -> list[NotificationPolicy]:
        """List active policies ordered by user id."""
        rows = self._execute(
            f"SELECT {POLICY_COLUMNS} FROM notification_policies WHERE active ORDER BY user_id"
        )
        return [NotificationPolicy(**r) for r in rows]

    def get_rate_configuration(self, user_id: str | None = None) -> RateConfiguration:
        """Get a user's rates, then the operator-wide row, then built-in defaults."""
        rows = self._execute(
            "SELECT user_id, monthly_interest_rate, penalty_rate, grace_days, commission_rate, updated_at "
            "FROM rate_configurations WHERE user_id = %s OR user_id IS NULL "
            "ORDER BY user_id NULLS LAST LIMIT 1",
            (user_id,),
        )
        if not rows:
            return RateConfiguration()
        return RateConfiguration(**rows[0])

    # Run coordination
    def acquire_run_lock(self, owner: str) -> bool:
        """Take the session-level advisory lock without blocking."""
        rows = self._execute("SELECT pg_try_advisory_lock(%s) AS locked", (SCAN_LOCK_KEY,))
        locked = bool(rows[0]["locked"])
        if locked:
            logger.debug("Run lock acquired by %s", owner)
        return locked

    def release_run_lock(self, owner: str) -> None:
        """Release the advisory lock."""
        self._execute("SELECT pg_advisory_unlock(%s) AS unlocked", (SCAN_LOCK_KEY,))
        logger.debug("Run lock released by %s", owner)
