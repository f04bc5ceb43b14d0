from .client import AlpacaBroker, DryRunBroker
from .models import (
    BrokerOrder,
    BrokerTimeInForce,
    LimitOrder,
    MarketOrder,
    OrderRequest,
    OrderSide,
    StopLimitOrder,
    StopOrder,
)
from .translate import translate

__all__ = [
    "AlpacaBroker",
    "BrokerOrder",
    "BrokerTimeInForce",
    "DryRunBroker",
    "LimitOrder",
    "MarketOrder",
    "OrderRequest",
    "OrderSide",
    "StopLimitOrder",
    "StopOrder",
    "translate",
]
