"""
Execution dispatcher: bus items → decode → normalize → translate → broker.

Each inbound message is handled in its own asyncio task. A semaphore caps how
many handlers are in flight; while the cap is reached the consume loop stops
pulling from the bus. Blocking broker calls run in worker threads.

Per message, stages run strictly in order and the first completed branch is
terminal:

    TransportError            -> log, continue
    undecodable payload       -> log, drop
    NewIntent                 -> normalize, translate, submit (with retry), log
    CancelIntent              -> cancel once (no retry), log

Messages are acknowledged once their pass completes, whatever the outcome,
including a handler crash. No message is requeued.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterable, Optional, Set

from trader.brokers import Broker
from trader.brokers.alpaca.models import BrokerOrder, OrderRequest
from trader.brokers.alpaca.translate import translate
from trader.common.errors import BrokerError, DecodeError, TransportError
from trader.common.logging import bind_message_id, log_event
from trader.execution.retry import RetryPolicy, Sleep, submit_with_retry
from trader.intents.decoder import decode
from trader.intents.models import CancelIntent, NewIntent
from trader.intents.normalizer import normalize
from trader.messaging.envelope import BusItem, InboundMessage


class DispatchStatus(str, Enum):
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"
    CANCELLED = "cancelled"
    CANCEL_FAILED = "cancel_failed"
    DROPPED = "dropped"
    CRASHED = "crashed"


@dataclass(frozen=True)
class DispatchOutcome:
    status: DispatchStatus
    message_id: str
    request: Optional[OrderRequest] = None
    order: Optional[BrokerOrder] = None
    error: Optional[str] = None


@dataclass
class DispatchSummary:
    outcomes: Counter = field(default_factory=Counter)
    transport_errors: int = 0
    abandoned: int = 0

    def count(self, status: DispatchStatus) -> int:
        return int(self.outcomes.get(status, 0))


class ExecutionDispatcher:
    def __init__(
        self,
        broker: Broker,
        *,
        logger: logging.Logger,
        retry_policy: Optional[RetryPolicy] = None,
        max_concurrency: int = 10,
        allow_legacy_bare_intent: bool = False,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_concurrency < 0:
            raise ValueError("max_concurrency must be >= 0 (0 = unbounded)")
        self._broker = broker
        self._logger = logger
        self._retry_policy = retry_policy or RetryPolicy()
        self._max_concurrency = int(max_concurrency)
        self._allow_legacy = bool(allow_legacy_bare_intent)
        self._sleep = sleep

    async def _submit(self, order: OrderRequest) -> BrokerOrder:
        return await asyncio.to_thread(self._broker.submit, order)

    async def _handle_new(self, message: InboundMessage, msg: NewIntent) -> DispatchOutcome:
        intent = normalize(msg.intent)
        request = translate(intent)
        try:
            order = await submit_with_retry(
                self._submit,
                request,
                policy=self._retry_policy,
                sleep=self._sleep,
                logger=self._logger,
            )
        except BrokerError as e:
            log_event(
                self._logger,
                "order.submit_failed",
                severity="WARNING",
                message=f"Failed to submit order: {e}",
                client_order_id=request.client_order_id,
                request=request.to_payload(),
                **e.to_dict(),
            )
            return DispatchOutcome(
                status=DispatchStatus.SUBMIT_FAILED,
                message_id=message.message_id,
                request=request,
                error=str(e),
            )

        log_event(
            self._logger,
            "order.submitted",
            message=f"Submitted order {order.id}",
            client_order_id=request.client_order_id,
            request=request.to_payload(),
            order=order.summary(),
        )
        return DispatchOutcome(
            status=DispatchStatus.SUBMITTED,
            message_id=message.message_id,
            request=request,
            order=order,
        )

    async def _handle_cancel(self, message: InboundMessage, msg: CancelIntent) -> DispatchOutcome:
        client_order_id = str(msg.id)
        try:
            await asyncio.to_thread(self._broker.cancel, client_order_id)
        except BrokerError as e:
            log_event(
                self._logger,
                "order.cancel_failed",
                severity="WARNING",
                message=f"Failed to cancel order: {e}",
                client_order_id=client_order_id,
                **e.to_dict(),
            )
            return DispatchOutcome(
                status=DispatchStatus.CANCEL_FAILED,
                message_id=message.message_id,
                error=str(e),
            )

        log_event(
            self._logger,
            "order.cancelled",
            message=f"Cancelled order {client_order_id}",
            client_order_id=client_order_id,
        )
        return DispatchOutcome(status=DispatchStatus.CANCELLED, message_id=message.message_id)

    async def _handle(self, message: InboundMessage) -> DispatchOutcome:
        try:
            msg = decode(message.payload, allow_legacy_bare_intent=self._allow_legacy)
        except DecodeError as e:
            log_event(
                self._logger,
                "message.dropped",
                severity="WARNING",
                message=f"Dropping undecodable message: {e}",
                reason=e.kind,
                error=str(e),
            )
            return DispatchOutcome(status=DispatchStatus.DROPPED, message_id=message.message_id, error=str(e))

        if isinstance(msg, NewIntent):
            return await self._handle_new(message, msg)
        if isinstance(msg, CancelIntent):
            return await self._handle_cancel(message, msg)
        raise TypeError(f"Unhandled trade message: {type(msg).__name__}")

    async def handle(self, message: InboundMessage) -> DispatchOutcome:
        """
        Run one message through the pipeline. Never raises.
        """
        with bind_message_id(message.message_id):
            try:
                outcome = await self._handle(message)
            except Exception as e:
                log_event(
                    self._logger,
                    "message.handler_crashed",
                    severity="ERROR",
                    message=f"Unexpected error while handling message: {e!r}",
                    exc_info=True,
                )
                outcome = DispatchOutcome(status=DispatchStatus.CRASHED, message_id=message.message_id, error=repr(e))
            message.ack()
            return outcome

    async def _next_item(self, iterator, stop_event: Optional[asyncio.Event]) -> Optional[BusItem]:
        """
        Await the next bus item; None when the stream ends or shutdown is requested.
        """
        if stop_event is None:
            try:
                return await iterator.__anext__()
            except StopAsyncIteration:
                return None

        next_task = asyncio.ensure_future(iterator.__anext__())
        stop_task = asyncio.ensure_future(stop_event.wait())
        done, _ = await asyncio.wait({next_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        stop_task.cancel()
        if next_task not in done:
            next_task.cancel()
            return None
        try:
            return next_task.result()
        except StopAsyncIteration:
            return None

    async def _acquire_slot(self, sem: Optional[asyncio.Semaphore], stop_event: Optional[asyncio.Event]) -> bool:
        """
        Wait for a free handler slot; False when shutdown is requested first.
        """
        if sem is None:
            return True
        if stop_event is None:
            await sem.acquire()
            return True
        if stop_event.is_set():
            return False

        acquire_task = asyncio.ensure_future(sem.acquire())
        stop_task = asyncio.ensure_future(stop_event.wait())
        done, _ = await asyncio.wait({acquire_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        stop_task.cancel()
        if acquire_task in done:
            return True
        acquire_task.cancel()
        return False

    async def run(
        self,
        stream: AsyncIterable[BusItem],
        *,
        stop_event: Optional[asyncio.Event] = None,
        shutdown_grace_s: float = 10.0,
    ) -> DispatchSummary:
        """
        Consume `stream` until it ends or `stop_event` is set.

        Shutdown stops pulling new items; handlers already dispatched are not
        cancelled. `run` waits up to `shutdown_grace_s` for them before returning.
        """
        summary = DispatchSummary()
        in_flight: Set["asyncio.Task[DispatchOutcome]"] = set()
        sem = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency > 0 else None

        def _done(task: "asyncio.Task[DispatchOutcome]") -> None:
            in_flight.discard(task)
            if sem is not None:
                sem.release()
            if not task.cancelled():
                summary.outcomes[task.result().status] += 1

        iterator = stream.__aiter__()
        while stop_event is None or not stop_event.is_set():
            # A slot is taken before pulling, so nothing is read from the bus
            # that cannot be dispatched right away.
            if not await self._acquire_slot(sem, stop_event):
                break
            item = await self._next_item(iterator, stop_event)
            if item is None or isinstance(item, TransportError):
                if sem is not None:
                    sem.release()
                if item is None:
                    break
                summary.transport_errors += 1
                log_event(
                    self._logger,
                    "bus.transport_error",
                    severity="WARNING",
                    message=f"Error receiving message from bus: {item}",
                    error=str(item),
                )
                continue

            task = asyncio.create_task(self.handle(item))
            in_flight.add(task)
            task.add_done_callback(_done)

        if in_flight:
            log_event(
                self._logger,
                "dispatcher.draining",
                message=f"Waiting for {len(in_flight)} in-flight message(s)",
                in_flight=len(in_flight),
            )
            _, pending = await asyncio.wait(set(in_flight), timeout=max(0.0, shutdown_grace_s))
            summary.abandoned = len(pending)
            if pending:
                log_event(
                    self._logger,
                    "dispatcher.drain_timeout",
                    severity="WARNING",
                    message=f"{len(pending)} message(s) still in flight after {shutdown_grace_s}s",
                    in_flight=len(pending),
                )

        log_event(
            self._logger,
            "dispatcher.stopped",
            message="Dispatcher stopped",
            transport_errors=summary.transport_errors,
            outcomes={k.value: v for k, v in summary.outcomes.items()},
        )
        return summary
