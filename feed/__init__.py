"""
Live feed module.

Simulates a push feed by polling each topic on its own schedule while it
has subscribers.
"""

from .scheduler import PeriodicTask
from .hub import BroadcastHub, ConnectionStatus, UnknownTopicError
from .topics import create_feed

__all__ = [
    "PeriodicTask",
    "BroadcastHub",
    "ConnectionStatus",
    "UnknownTopicError",
    "create_feed",
]
