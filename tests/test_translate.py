from decimal import Decimal
from uuid import UUID

import pytest

from trader.brokers.alpaca.models import (
    BrokerTimeInForce,
    LimitOrder,
    MarketOrder,
    OrderSide,
    StopLimitOrder,
    StopOrder,
)
from trader.brokers.alpaca.translate import TIME_IN_FORCE_MAP, translate, translate_order_type
from trader.intents.models import Limit, Market, Stop, StopLimit, TimeInForce, TradeIntent


_ID = UUID("904837e3-3b76-47ec-b432-046db621571b")


def _intent(qty=5, order_type=None, tif=TimeInForce.DAY, **kw):
    return TradeIntent(
        ticker="AAPL",
        qty=qty,
        order_type=order_type or Market(),
        time_in_force=tif,
        id=_ID,
        **kw,
    )


def test_positive_qty_is_buy():
    req = translate(_intent(qty=5))
    assert req.side is OrderSide.BUY
    assert req.qty == 5


def test_negative_qty_is_sell_with_absolute_qty():
    req = translate(_intent(qty=-5))
    assert req.side is OrderSide.SELL
    assert req.qty == 5


def test_every_time_in_force_maps_to_exactly_one_broker_value():
    assert set(TIME_IN_FORCE_MAP) == set(TimeInForce)
    assert len(set(TIME_IN_FORCE_MAP.values())) == len(TimeInForce)
    for tif in TimeInForce:
        assert isinstance(translate(_intent(tif=tif)).time_in_force, BrokerTimeInForce)
    assert TIME_IN_FORCE_MAP[TimeInForce.GOOD_TIL_CANCELED] is BrokerTimeInForce.GOOD_TIL_CANCELLED


@pytest.mark.parametrize(
    "order_type, expected",
    [
        (Market(), MarketOrder()),
        (Limit(Decimal("1.23")), LimitOrder(limit_price=Decimal("1.23"))),
        (Stop(Decimal("4.56")), StopOrder(stop_price=Decimal("4.56"))),
        (StopLimit(Decimal("4.56"), Decimal("4.50")), StopLimitOrder(stop_price=Decimal("4.56"), limit_price=Decimal("4.50"))),
    ],
)
def test_order_type_copied_field_for_field(order_type, expected):
    assert translate_order_type(order_type) == expected


def test_unmapped_order_type_is_a_programming_error():
    with pytest.raises(TypeError):
        translate_order_type(object())


def test_client_order_id_is_canonical_uuid_string():
    req = translate(_intent())
    assert req.client_order_id == "904837e3-3b76-47ec-b432-046db621571b"


def test_end_to_end_limit_example():
    req = translate(
        _intent(qty=1, order_type=Limit(Decimal("100.00")), tif=TimeInForce.GOOD_TIL_CANCELED)
    )
    assert req.symbol == "AAPL"
    assert req.qty == 1
    assert req.side is OrderSide.BUY
    assert req.order_type == LimitOrder(limit_price=Decimal("100.00"))
    assert req.time_in_force is BrokerTimeInForce.GOOD_TIL_CANCELLED
    assert req.to_payload() == {
        "symbol": "AAPL",
        "qty": "1",
        "side": "buy",
        "type": "limit",
        "limit_price": "100.00",
        "time_in_force": "gtc",
        "client_order_id": "904837e3-3b76-47ec-b432-046db621571b",
    }


def test_payload_for_stop_limit_sell_with_extended_hours():
    req = translate(
        _intent(
            qty=-2,
            order_type=StopLimit(Decimal("9.99"), Decimal("9.95")),
            tif=TimeInForce.DAY,
            extended_hours=True,
        )
    )
    assert req.to_payload() == {
        "symbol": "AAPL",
        "qty": "2",
        "side": "sell",
        "type": "stop_limit",
        "stop_price": "9.99",
        "limit_price": "9.95",
        "time_in_force": "day",
        "client_order_id": "904837e3-3b76-47ec-b432-046db621571b",
        "extended_hours": True,
    }


def test_market_payload_has_no_prices():
    payload = translate(_intent(qty=3)).to_payload()
    assert payload["type"] == "market"
    assert "limit_price" not in payload
    assert "stop_price" not in payload
