"""
Wire schemas for inbound trade messages.

Shapes are discriminated by an explicit `action` field:

    {"action": "new", "intent": {...}}
    {"action": "cancel", "id": "<uuid>"}

`BareIntentV0` is the legacy shape (the intent object on its own, no envelope),
accepted only when the decoder is configured to allow it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictBool, StrictInt, TypeAdapter, field_validator

from trader.intents.models import (
    CancelIntent,
    Limit,
    Market,
    NewIntent,
    OrderType,
    Stop,
    StopLimit,
    TimeInForce,
    TradeIntent,
)
from trader.intents.normalizer import check_price


Price = Annotated[Decimal, Field(gt=0, allow_inf_nan=False), AfterValidator(check_price)]


class IntentV1(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    ticker: str = Field(min_length=1)
    qty: StrictInt
    order_type: Literal["market", "limit", "stop", "stop_limit"]
    limit_price: Optional[Price] = None
    stop_price: Optional[Price] = None
    time_in_force: TimeInForce
    extended_hours: StrictBool = False
    id: UUID

    @field_validator("ticker")
    @classmethod
    def _strip_ticker(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ticker must be non-empty")
        return v

    @field_validator("qty")
    @classmethod
    def _non_zero_qty(cls, v: int) -> int:
        if v == 0:
            raise ValueError("qty must be non-zero")
        return v

    def _order_type(self) -> OrderType:
        if self.order_type == "market":
            return Market()
        if self.order_type == "limit":
            return Limit(limit_price=self.limit_price)
        if self.order_type == "stop":
            return Stop(stop_price=self.stop_price)
        return StopLimit(stop_price=self.stop_price, limit_price=self.limit_price)

    def to_intent(self) -> TradeIntent:
        return TradeIntent(
            ticker=self.ticker,
            qty=self.qty,
            order_type=self._order_type(),
            time_in_force=self.time_in_force,
            id=self.id,
            extended_hours=self.extended_hours,
        )


class NewMessageV1(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["new"]
    intent: IntentV1

    def to_message(self) -> NewIntent:
        return NewIntent(intent=self.intent.to_intent())


class CancelMessageV1(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["cancel"]
    id: UUID

    def to_message(self) -> CancelIntent:
        return CancelIntent(id=self.id)


class BareIntentV0(IntentV1):
    """Legacy producers published the intent object without an action envelope."""

    def to_message(self) -> NewIntent:
        return NewIntent(intent=self.to_intent())


TradeMessageV1 = Annotated[Union[NewMessageV1, CancelMessageV1], Field(discriminator="action")]

TRADE_MESSAGE_V1: TypeAdapter[Union[NewMessageV1, CancelMessageV1]] = TypeAdapter(TradeMessageV1)
