from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import requests

from trader.brokers.alpaca.models import BrokerOrder, OrderRequest
from trader.common.config import AlpacaSettings
from trader.common.errors import BrokerError

logger = logging.getLogger(__name__)


def _response_body(r: requests.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return (r.text or "")[:2000]


def _raise_for_status(r: requests.Response, *, operation: str) -> None:
    if 200 <= r.status_code < 300:
        return
    body = _response_body(r)
    detail = body.get("message") if isinstance(body, dict) else body
    raise BrokerError(
        f"Alpaca {operation} failed with HTTP {r.status_code}: {detail}",
        status_code=r.status_code,
        body=body,
    )


def _json_object(r: requests.Response, *, operation: str) -> dict[str, Any]:
    # A 2xx reply means the broker acted on the request, so a malformed body is
    # terminal rather than a reason to resend.
    try:
        body = r.json()
    except ValueError as e:
        raise BrokerError(
            f"Alpaca {operation} returned HTTP {r.status_code} with a non-JSON body",
            status_code=r.status_code,
            body=(r.text or "")[:2000],
            retryable=False,
        ) from e
    if not isinstance(body, dict):
        raise BrokerError(
            f"Alpaca {operation} returned HTTP {r.status_code} with a non-object body",
            status_code=r.status_code,
            body=body,
            retryable=False,
        )
    return body


class AlpacaBroker:
    """
    Minimal Alpaca Trading v2 REST broker.

    Every call is an independent HTTP request (no shared connection state), so a
    single instance is safe to use from concurrent worker threads.
    """

    def __init__(self, settings: AlpacaSettings):
        self._base = settings.trading_base_v2
        self._headers = {
            "APCA-API-KEY-ID": settings.key_id,
            "APCA-API-SECRET-KEY": settings.secret_key,
        }
        self._timeout = settings.request_timeout_s

    def submit(self, order: OrderRequest) -> BrokerOrder:
        try:
            r = requests.post(
                f"{self._base}/orders",
                headers=self._headers,
                json=order.to_payload(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise BrokerError(f"Alpaca submit transport failure: {e}") from e
        _raise_for_status(r, operation="submit")
        return BrokerOrder.from_api(_json_object(r, operation="submit"))

    def cancel(self, client_order_id: str) -> None:
        """
        Cancel the open order carrying `client_order_id`.

        Alpaca cancels by its own order id, so the client order id is resolved first.
        """
        try:
            r = requests.get(
                f"{self._base}/orders:by_client_order_id",
                headers=self._headers,
                params={"client_order_id": client_order_id},
                timeout=self._timeout,
            )
            _raise_for_status(r, operation="order lookup")
            broker_order_id = str(_json_object(r, operation="order lookup").get("id") or "")
            if not broker_order_id:
                raise BrokerError(
                    f"Alpaca order lookup returned no id for client_order_id={client_order_id}",
                    status_code=r.status_code,
                    retryable=False,
                )

            r = requests.delete(
                f"{self._base}/orders/{broker_order_id}",
                headers=self._headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise BrokerError(f"Alpaca cancel transport failure: {e}") from e
        # Alpaca returns 204 for cancel success
        _raise_for_status(r, operation="cancel")


class DryRunBroker:
    """
    Broker implementation that never routes orders. Useful for validation / CI.
    """

    def submit(self, order: OrderRequest) -> BrokerOrder:
        payload = order.to_payload()
        logger.info("Dry run: not routing order %s", order.client_order_id)
        return BrokerOrder.from_api(
            {
                **payload,
                "id": f"dryrun_{uuid.uuid4().hex}",
                "status": "dry_run",
                "submitted_at": datetime.now(timezone.utc).isoformat(),
            }
        )

    def cancel(self, client_order_id: str) -> None:
        logger.info("Dry run: not cancelling order %s", client_order_id)
