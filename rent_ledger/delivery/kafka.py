"""Kafka delivery channel publishing notification events."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from confluent_kafka import KafkaException, Producer

from rent_ledger.config import KafkaConfig
from rent_ledger.delivery.serialization import notification_to_dict
from rent_ledger.exceptions import DeliveryError
from rent_ledger.models import Notification

logger = logging.getLogger(__name__)

EVENT_TYPE = "notification.sent"
EVENT_SOURCE = "rent-ledger"


@dataclass
class DeliveryStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    late: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class KafkaDelivery:
    """Publish each notification as an event and wait for the broker ack.

    Messages are keyed by user id so a user's notifications stay ordered
    within a partition. ``mark_delivered`` blocks for at most
    ``config.delivery_timeout_seconds``.

    Parameters
    ----------
    config : KafkaConfig | str
        Producer configuration or bootstrap servers string.
    """

    def __init__(self, config: KafkaConfig | str) -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.producer = Producer(config.to_dict())
        self.stats = DeliveryStats()
        self._outcomes: dict[str, bool] = {}
        # ids whose ack mark_delivered is still waiting for
        self._awaiting: set[str] = set()

    def _build_event(self, notification: Notification) -> dict[str, Any]:
        """Wrap the notification in the standard event envelope."""
        return {
            "event_type": EVENT_TYPE,
            "event_time": datetime.now().isoformat(),
            "source": EVENT_SOURCE,
            "subject": notification.notification_id,
            "data": notification_to_dict(notification),
        }

    def _delivery_callback(self, notification_id: str):
        def callback(err: Any, msg: Any) -> None:
            if notification_id not in self._awaiting:
                # the wait already timed out and the record stayed pending
                self.stats.late += 1
                logger.warning("Ignoring late delivery report for notification %s", notification_id)
                return
            if err:
                self.stats.failed += 1
                self._outcomes[notification_id] = False
                logger.error("Delivery of notification %s failed: %s", notification_id, err)
            else:
                self.stats.delivered += 1
                self._outcomes[notification_id] = True
                logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

        return callback

    def mark_delivered(self, notification: Notification) -> bool:
        """Publish one notification and report whether the broker acknowledged it.

        Raises
        ------
        DeliveryError
            If the producer rejects the message outright (queue full,
            invalid configuration).
        """
        notification_id = notification.notification_id
        value = json.dumps(self._build_event(notification), ensure_ascii=False, default=str)

        try:
            self.producer.produce(
                topic=self.config.topic,
                key=notification.user_id.encode("utf-8"),
                value=value.encode("utf-8"),
                callback=self._delivery_callback(notification_id),
            )
        except (BufferError, KafkaException) as e:
            raise DeliveryError(f"Could not enqueue notification {notification_id}: {e}") from e

        self.stats.sent += 1
        self._awaiting.add(notification_id)
        try:
            self.producer.flush(self.config.delivery_timeout_seconds)
        finally:
            self._awaiting.discard(notification_id)

        delivered = self._outcomes.pop(notification_id, None)
        if delivered is None:
            logger.warning(
                "No broker ack for notification %s within %.1fs",
                notification_id,
                self.config.delivery_timeout_seconds,
            )
            return False
        return delivered

    def close(self) -> None:
        """Flush and close the producer."""
        self.producer.flush(self.config.delivery_timeout_seconds)
        logger.info(
            "Kafka delivery closed: sent=%d, delivered=%d, failed=%d, late=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
            self.stats.late,
        )
