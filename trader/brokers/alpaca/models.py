from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class BrokerTimeInForce(str, Enum):
    GOOD_TIL_CANCELLED = "gtc"
    DAY = "day"
    IMMEDIATE_OR_CANCEL = "ioc"
    FILL_OR_KILL = "fok"
    OPEN = "opg"
    CLOSE = "cls"


@dataclass(frozen=True)
class MarketOrder:
    type: str = field(default="market", init=False)


@dataclass(frozen=True)
class LimitOrder:
    limit_price: Optional[Decimal] = None
    type: str = field(default="limit", init=False)


@dataclass(frozen=True)
class StopOrder:
    stop_price: Optional[Decimal] = None
    type: str = field(default="stop", init=False)


@dataclass(frozen=True)
class StopLimitOrder:
    stop_price: Optional[Decimal] = None
    limit_price: Optional[Decimal] = None
    type: str = field(default="stop_limit", init=False)


BrokerOrderType = Union[MarketOrder, LimitOrder, StopOrder, StopLimitOrder]


@dataclass(frozen=True)
class OrderRequest:
    """
    Alpaca Trading v2 order request (`POST /v2/orders`).

    `client_order_id` ties the broker order back to the originating intent and is
    the only idempotency signal the broker receives.
    """

    symbol: str
    qty: int
    side: OrderSide
    order_type: BrokerOrderType
    time_in_force: BrokerTimeInForce
    client_order_id: str
    extended_hours: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "symbol": self.symbol,
            "qty": str(self.qty),
            "side": self.side.value,
            "type": self.order_type.type,
            "time_in_force": self.time_in_force.value,
            "client_order_id": self.client_order_id,
        }
        limit_price = getattr(self.order_type, "limit_price", None)
        if limit_price is not None:
            payload["limit_price"] = str(limit_price)
        stop_price = getattr(self.order_type, "stop_price", None)
        if stop_price is not None:
            payload["stop_price"] = str(stop_price)
        if self.extended_hours:
            payload["extended_hours"] = True
        return payload


@dataclass(frozen=True)
class BrokerOrder:
    """The broker's acknowledgement of an accepted order."""

    id: str
    client_order_id: str
    status: str
    symbol: Optional[str] = None
    qty: Optional[str] = None
    side: Optional[str] = None
    type: Optional[str] = None
    submitted_at: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @staticmethod
    def from_api(data: Mapping[str, Any]) -> "BrokerOrder":
        def _opt(key: str) -> Optional[str]:
            v = data.get(key)
            return None if v is None else str(v)

        return BrokerOrder(
            id=str(data.get("id") or ""),
            client_order_id=str(data.get("client_order_id") or ""),
            status=str(data.get("status") or "unknown"),
            symbol=_opt("symbol"),
            qty=_opt("qty"),
            side=_opt("side"),
            type=_opt("type") or _opt("order_type"),
            submitted_at=_opt("submitted_at"),
            raw=dict(data),
        )

    def summary(self) -> dict[str, Any]:
        return {
            "broker_order_id": self.id,
            "client_order_id": self.client_order_id,
            "status": self.status,
            "symbol": self.symbol,
            "qty": self.qty,
            "side": self.side,
            "type": self.type,
        }
