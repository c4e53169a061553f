"""Extension transport: correlated requests, push events and connection monitoring."""

from src.transport.broadcast import BroadcastBus
from src.transport.correlation import CorrelationTransport
from src.transport.direct import DirectChannel, HttpDirectChannel
from src.transport.monitor import ConnectionMonitor, ConnectionState

__all__ = [
    "BroadcastBus",
    "ConnectionMonitor",
    "ConnectionState",
    "CorrelationTransport",
    "DirectChannel",
    "HttpDirectChannel",
]
