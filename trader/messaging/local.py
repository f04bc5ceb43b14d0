from __future__ import annotations

import asyncio
import uuid
from threading import Lock
from typing import AsyncIterator, List, Mapping, Optional, Union

from trader.common.errors import TransportError
from trader.messaging.envelope import BusItem, InboundMessage


_CLOSED = object()


class InMemoryMessageBus:
    """
    Minimal in-memory message bus for local runs and tests.

    This is NOT a production transport; it exists so the dispatcher can be
    exercised end to end without Pub/Sub. Acknowledgements are recorded in
    `acked` / `nacked` (by message id).
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._queue: "asyncio.Queue[Union[BusItem, object]]" = asyncio.Queue()
        self.acked: List[str] = []
        self.nacked: List[str] = []

    def _record(self, target: List[str], message_id: str) -> None:
        with self._lock:
            target.append(message_id)

    def publish(
        self,
        payload: Optional[bytes],
        *,
        message_id: Optional[str] = None,
        attributes: Optional[Mapping[str, str]] = None,
    ) -> InboundMessage:
        mid = str(message_id) if message_id is not None else uuid.uuid4().hex
        msg = InboundMessage(
            payload=payload,
            message_id=mid,
            attributes=dict(attributes or {}),
            _ack=lambda: self._record(self.acked, mid),
            _nack=lambda: self._record(self.nacked, mid),
        )
        self._queue.put_nowait(msg)
        return msg

    def publish_error(self, error: TransportError) -> None:
        self._queue.put_nowait(error)

    def close(self) -> None:
        """Mark the end of the stream; consumers finish after draining."""
        self._queue.put_nowait(_CLOSED)

    async def stream(self) -> AsyncIterator[BusItem]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
