"""Delivery channels for emitted notifications."""

from rent_ledger.delivery.base import DeliveryChannel
from rent_ledger.delivery.kafka import KafkaDelivery
from rent_ledger.delivery.stub import StubDelivery

__all__ = ["DeliveryChannel", "KafkaDelivery", "StubDelivery"]
