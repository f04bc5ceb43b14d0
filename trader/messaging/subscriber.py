from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

from trader.common.errors import TransportError
from trader.messaging.envelope import BusItem, InboundMessage

logger = logging.getLogger(__name__)


class _StreamStopped:
    def __init__(self, future: Any) -> None:
        self.future = future


class PubSubMessageStream:
    """
    Google Pub/Sub streaming pull exposed as an async stream of bus items.

    The Pub/Sub client invokes its callback on a background thread; messages are
    handed to the event loop through an `asyncio.Queue`. When the streaming pull
    fails, a `TransportError` is yielded and the subscription is reopened after
    `resubscribe_delay_s`. The stream ends only when `close()` is called.

    Lazy-imports `google.cloud.pubsub_v1` so the codebase can still import in
    environments where Pub/Sub dependencies are not installed.
    """

    def __init__(
        self,
        *,
        project_id: str,
        subscription_id: str,
        subscriber_client: Any = None,
        flow_control: Any = None,
        max_outstanding_messages: int = 100,
        resubscribe_delay_s: float = 1.0,
    ) -> None:
        self.project_id = str(project_id)
        self.subscription_id = str(subscription_id)
        self._resubscribe_delay_s = float(resubscribe_delay_s)

        if subscriber_client is None:
            try:
                from google.cloud import pubsub_v1  # type: ignore
            except Exception as e:  # pragma: no cover
                raise RuntimeError(
                    "google-cloud-pubsub is required to use PubSubMessageStream. "
                    "Install with: pip install google-cloud-pubsub"
                ) from e
            subscriber_client = pubsub_v1.SubscriberClient()
            if flow_control is None:
                flow_control = pubsub_v1.types.FlowControl(max_messages=int(max_outstanding_messages))

        self._client = subscriber_client
        self._flow_control = flow_control
        self._subscription_path = self._client.subscription_path(self.project_id, self.subscription_id)
        self._future: Any = None
        self._closed = False

    @property
    def subscription_path(self) -> str:
        return self._subscription_path

    def _open(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Any]") -> None:
        def _callback(message: Any) -> None:
            publish_time = getattr(message, "publish_time", None)
            item = InboundMessage(
                payload=getattr(message, "data", None),
                message_id=str(getattr(message, "message_id", "") or ""),
                attributes=dict(getattr(message, "attributes", None) or {}),
                publish_time=publish_time.isoformat() if publish_time is not None else None,
                _ack=message.ack,
                _nack=message.nack,
            )
            loop.call_soon_threadsafe(queue.put_nowait, item)

        kwargs: dict[str, Any] = {"callback": _callback}
        if self._flow_control is not None:
            kwargs["flow_control"] = self._flow_control
        future = self._client.subscribe(self._subscription_path, **kwargs)
        future.add_done_callback(lambda f: loop.call_soon_threadsafe(queue.put_nowait, _StreamStopped(f)))
        self._future = future
        logger.info("Subscribed to %s", self._subscription_path)

    async def stream(self) -> AsyncIterator[BusItem]:
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._open(loop, queue)

        while True:
            item = await queue.get()
            if not isinstance(item, _StreamStopped):
                yield item
                continue
            if self._closed:
                return
            # The future is done; exception() does not block.
            exc: Optional[BaseException] = None
            if not item.future.cancelled():
                exc = item.future.exception()
            yield TransportError(f"Pub/Sub streaming pull stopped: {exc!r}", cause=exc)
            await asyncio.sleep(self._resubscribe_delay_s)
            if self._closed:
                return
            self._open(loop, queue)

    def close(self) -> None:
        """Stop pulling new messages. Messages already handed out can still be acked."""
        self._closed = True
        if self._future is not None:
            self._future.cancel()
