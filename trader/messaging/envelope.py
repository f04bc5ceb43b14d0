from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

from trader.common.errors import TransportError


def _noop() -> None:
    return None


@dataclass(frozen=True)
class InboundMessage:
    """
    One message pulled from the bus.

    Only `payload` feeds the pipeline; the remaining fields are transport metadata
    used for logging and acknowledgement.
    """

    payload: Optional[bytes]
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attributes: Dict[str, str] = field(default_factory=dict)
    publish_time: Optional[str] = None
    _ack: Callable[[], None] = field(default=_noop, repr=False, compare=False)
    _nack: Callable[[], None] = field(default=_noop, repr=False, compare=False)

    def ack(self) -> None:
        self._ack()

    def nack(self) -> None:
        self._nack()


# What a bus stream yields: a message, or a read failure the consumer logs and skips.
BusItem = Union[InboundMessage, TransportError]
