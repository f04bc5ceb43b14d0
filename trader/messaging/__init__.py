"""
Inbound trade messages via a message bus abstraction.

This package provides:
- The transport-neutral message envelope (`InboundMessage`)
- A Google Pub/Sub stream adapter (lazy-imported client)
- A minimal in-memory bus for local runs and tests
"""

from .envelope import BusItem, InboundMessage
from .local import InMemoryMessageBus
from .subscriber import PubSubMessageStream

__all__ = [
    "BusItem",
    "InMemoryMessageBus",
    "InboundMessage",
    "PubSubMessageStream",
]
