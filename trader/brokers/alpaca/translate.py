"""
Intent → Alpaca order request.

Pure and total for any valid `TradeIntent`. An order type or time in force with
no mapping is a programming error (`TypeError`/`KeyError`), never a runtime outcome.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from trader.brokers.alpaca.models import (
    BrokerOrderType,
    BrokerTimeInForce,
    LimitOrder,
    MarketOrder,
    OrderRequest,
    OrderSide,
    StopLimitOrder,
    StopOrder,
)
from trader.intents.models import Limit, Market, OrderType, Stop, StopLimit, TimeInForce, TradeIntent


TIME_IN_FORCE_MAP: Mapping[TimeInForce, BrokerTimeInForce] = MappingProxyType(
    {
        TimeInForce.GOOD_TIL_CANCELED: BrokerTimeInForce.GOOD_TIL_CANCELLED,
        TimeInForce.DAY: BrokerTimeInForce.DAY,
        TimeInForce.IMMEDIATE_OR_CANCEL: BrokerTimeInForce.IMMEDIATE_OR_CANCEL,
        TimeInForce.FILL_OR_KILL: BrokerTimeInForce.FILL_OR_KILL,
        TimeInForce.OPEN: BrokerTimeInForce.OPEN,
        TimeInForce.CLOSE: BrokerTimeInForce.CLOSE,
    }
)


def translate_order_type(order_type: OrderType) -> BrokerOrderType:
    if isinstance(order_type, Market):
        return MarketOrder()
    if isinstance(order_type, Limit):
        return LimitOrder(limit_price=order_type.limit_price)
    if isinstance(order_type, Stop):
        return StopOrder(stop_price=order_type.stop_price)
    if isinstance(order_type, StopLimit):
        return StopLimitOrder(stop_price=order_type.stop_price, limit_price=order_type.limit_price)
    raise TypeError(f"No broker mapping for order type: {type(order_type).__name__}")


def translate(intent: TradeIntent) -> OrderRequest:
    return OrderRequest(
        symbol=intent.ticker,
        qty=abs(intent.qty),
        side=OrderSide.BUY if intent.qty > 0 else OrderSide.SELL,
        order_type=translate_order_type(intent.order_type),
        time_in_force=TIME_IN_FORCE_MAP[intent.time_in_force],
        client_order_id=str(intent.id),
        extended_hours=intent.extended_hours,
    )
