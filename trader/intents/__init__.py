"""
Trade intents: the broker-independent message contract.

This package provides:
- Immutable intent/message types (`TradeIntent`, `NewIntent`, `CancelIntent`)
- The payload decoder (`decode`)
- Side-aware price normalization (`normalize`)
"""

from .decoder import decode
from .models import (
    CancelIntent,
    Limit,
    Market,
    NewIntent,
    Stop,
    StopLimit,
    TimeInForce,
    TradeIntent,
    TradeMessage,
)
from .normalizer import normalize, normalize_message

__all__ = [
    "CancelIntent",
    "Limit",
    "Market",
    "NewIntent",
    "Stop",
    "StopLimit",
    "TimeInForce",
    "TradeIntent",
    "TradeMessage",
    "decode",
    "normalize",
    "normalize_message",
]
