from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID


class TimeInForce(str, Enum):
    GOOD_TIL_CANCELED = "gtc"
    DAY = "day"
    IMMEDIATE_OR_CANCEL = "ioc"
    FILL_OR_KILL = "fok"
    OPEN = "opg"
    CLOSE = "cls"


@dataclass(frozen=True)
class Market:
    pass


@dataclass(frozen=True)
class Limit:
    limit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class Stop:
    stop_price: Optional[Decimal] = None


@dataclass(frozen=True)
class StopLimit:
    stop_price: Optional[Decimal] = None
    limit_price: Optional[Decimal] = None


OrderType = Union[Market, Limit, Stop, StopLimit]


@dataclass(frozen=True)
class TradeIntent:
    """
    A client's desired trading action, independent of any broker schema.

    The sign of `qty` encodes the side (positive = buy, negative = sell); its
    magnitude is the share count. `id` is forwarded to the broker as the
    client order id.
    """

    ticker: str
    qty: int
    order_type: OrderType
    time_in_force: TimeInForce
    id: UUID
    extended_hours: bool = False

    def __post_init__(self) -> None:
        if self.qty == 0:
            raise ValueError("TradeIntent.qty must be non-zero")
        if not self.ticker:
            raise ValueError("TradeIntent.ticker must be non-empty")

    @property
    def is_buy(self) -> bool:
        return self.qty > 0


@dataclass(frozen=True)
class NewIntent:
    intent: TradeIntent


@dataclass(frozen=True)
class CancelIntent:
    id: UUID


TradeMessage = Union[NewIntent, CancelIntent]
