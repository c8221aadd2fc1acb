"""Buffered, reconnecting delivery of records to a collector."""

from .client import (
    ConnectInitiationFailed,
    ConnectionState,
    DeliveryClient,
    DeliveryError,
    DeliveryFailed,
)
from .gateways.base import ConnectionCallbacks, ConnectionGateway
from .gateways.memory import InMemoryGateway

__all__ = [
    "ConnectInitiationFailed",
    "ConnectionCallbacks",
    "ConnectionGateway",
    "ConnectionState",
    "DeliveryClient",
    "DeliveryError",
    "DeliveryFailed",
    "InMemoryGateway",
]
