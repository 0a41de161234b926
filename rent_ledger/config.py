"""Configuration management for rent-ledger."""

import os
from dataclasses import dataclass, field
from typing import Any

from rent_ledger.exceptions import ConfigurationError


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "rentledger"
    user: str = "postgres"
    password: str = "postgres"
    connect_timeout: int = 5  # seconds
    statement_timeout_ms: int = 10000

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class KafkaConfig:
    """Kafka producer configuration for notification delivery."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    topic: str = "rent.notifications"
    linger_ms: int = 0
    retries: int = 3
    delivery_timeout_seconds: float = 5.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "retries": self.retries,
            "message.timeout.ms": int(self.delivery_timeout_seconds * 1000),
        }


@dataclass
class ScanConfig:
    """Notification scan tuning."""

    batch_size: int = 100  # max notifications flushed per run
    page_size: int = 500  # payments loaded per page during status refresh
    max_workers: int = 4
    refresh_payment_status: bool = True
    reminder_catch_up: bool = False
    overdue_urgent_after_days: int = 30
    due_soon_high_within_days: int = 1
    expiring_high_within_days: int = 7

    def validate(self) -> None:
        """Raise ConfigurationError when a setting is out of range."""
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.page_size < 1:
            raise ConfigurationError(f"page_size must be >= 1, got {self.page_size}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")


@dataclass
class EngineConfig:
    """Main configuration for rent-ledger."""

    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        try:
            postgres = PostgresConfig(
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "rentledger"),
                user=os.getenv("POSTGRES_USER", "postgres"),
                password=os.getenv("POSTGRES_PASSWORD", "postgres"),
                connect_timeout=int(os.getenv("POSTGRES_CONNECT_TIMEOUT", "5")),
                statement_timeout_ms=int(os.getenv("POSTGRES_STATEMENT_TIMEOUT_MS", "10000")),
            )

            kafka = KafkaConfig(
                bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
                acks=os.getenv("KAFKA_ACKS", "all"),
                topic=os.getenv("KAFKA_TOPIC", "rent.notifications"),
                delivery_timeout_seconds=float(os.getenv("KAFKA_DELIVERY_TIMEOUT", "5")),
            )

            scan = ScanConfig(
                batch_size=int(os.getenv("SCAN_BATCH_SIZE", "100")),
                page_size=int(os.getenv("SCAN_PAGE_SIZE", "500")),
                max_workers=int(os.getenv("SCAN_MAX_WORKERS", "4")),
                refresh_payment_status=os.getenv("SCAN_REFRESH_STATUS", "true").lower() == "true",
                reminder_catch_up=os.getenv("SCAN_REMINDER_CATCH_UP", "false").lower() == "true",
            )
            seed = int(os.getenv("SEED")) if os.getenv("SEED") else None
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e

        scan.validate()

        return cls(
            postgres=postgres,
            kafka=kafka,
            scan=scan,
            seed=seed,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
