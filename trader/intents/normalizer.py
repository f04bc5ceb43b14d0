"""
Side-aware price normalization.

Brokers accept at most two fractional digits on equity prices. Rounding is never
"nearest": each field rounds in the direction that keeps the order at least as
conservative as the client asked for.

    side  field        direction         decimal mode
    buy   limit_price  toward zero       ROUND_DOWN   (never pay above the limit)
    buy   stop_price   away from zero    ROUND_UP     (never trigger early)
    sell  limit_price  away from zero    ROUND_UP     (never sell below the limit)
    sell  stop_price   toward zero       ROUND_DOWN   (never trigger early)
"""

from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_DOWN, ROUND_UP, Decimal, InvalidOperation
from typing import Optional

from trader.intents.models import (
    CancelIntent,
    Limit,
    Market,
    NewIntent,
    Stop,
    StopLimit,
    TradeIntent,
    TradeMessage,
)


PRICE_QUANTUM = Decimal("0.01")


def _round(price: Optional[Decimal], rounding: str) -> Optional[Decimal]:
    if price is None:
        return None
    return price.quantize(PRICE_QUANTUM, rounding=rounding)


def check_price(price: Decimal) -> Decimal:
    """
    Reject a price whose cent-rounded value does not fit the decimal context.

    ROUND_UP yields the largest magnitude, so a price that passes can be
    normalized under either rounding direction.
    """
    try:
        price.quantize(PRICE_QUANTUM, rounding=ROUND_UP)
    except InvalidOperation as e:
        raise ValueError(f"price {price} cannot be expressed in cents") from e
    return price


def limit_rounding(*, is_buy: bool) -> str:
    return ROUND_DOWN if is_buy else ROUND_UP


def stop_rounding(*, is_buy: bool) -> str:
    return ROUND_UP if is_buy else ROUND_DOWN


def normalize(intent: TradeIntent) -> TradeIntent:
    ot = intent.order_type
    is_buy = intent.is_buy

    if isinstance(ot, Market):
        return intent
    if isinstance(ot, Limit):
        new_ot = Limit(limit_price=_round(ot.limit_price, limit_rounding(is_buy=is_buy)))
    elif isinstance(ot, Stop):
        new_ot = Stop(stop_price=_round(ot.stop_price, stop_rounding(is_buy=is_buy)))
    elif isinstance(ot, StopLimit):
        new_ot = StopLimit(
            stop_price=_round(ot.stop_price, stop_rounding(is_buy=is_buy)),
            limit_price=_round(ot.limit_price, limit_rounding(is_buy=is_buy)),
        )
    else:
        raise TypeError(f"Unhandled order type: {type(ot).__name__}")

    return replace(intent, order_type=new_ot)


def normalize_message(msg: TradeMessage) -> TradeMessage:
    if isinstance(msg, NewIntent):
        return NewIntent(intent=normalize(msg.intent))
    if isinstance(msg, CancelIntent):
        return msg
    raise TypeError(f"Unhandled trade message: {type(msg).__name__}")
