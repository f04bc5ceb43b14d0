from __future__ import annotations

from typing import Protocol, runtime_checkable

from trader.brokers.alpaca.models import BrokerOrder, OrderRequest


@runtime_checkable
class Broker(Protocol):
    """
    Broker abstraction. The dispatcher depends only on this interface.

    Implementations raise `trader.common.errors.BrokerError` on failure.
    """

    def submit(self, order: OrderRequest) -> BrokerOrder:
        """Submit an order; returns the broker's acknowledgement."""

    def cancel(self, client_order_id: str) -> None:
        """Cancel the open order placed with `client_order_id`."""


__all__ = ["Broker"]
