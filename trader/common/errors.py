from __future__ import annotations

from typing import Any, Optional


class TraderError(RuntimeError):
    """Base class for every error raised by the trade bridge."""


class ConfigError(TraderError):
    """
    Raised when required settings are missing or invalid.

    Fatal at startup: the process exits before entering the consume loop.
    """


class TransportError(TraderError):
    """
    A failure reading from the message bus.

    Yielded (not raised) by bus streams so the consume loop can log and continue.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class DecodeError(TraderError):
    """Raised when an inbound payload cannot be decoded into a trade message."""

    kind: str = "decode_error"


class EmptyMessageError(DecodeError):
    kind = "empty"

    def __init__(self) -> None:
        super().__init__("Trader received empty message")


class InvalidTextError(DecodeError):
    kind = "invalid_text"


class SchemaMismatchError(DecodeError):
    kind = "schema_mismatch"


# Statuses Alpaca (and most HTTP APIs) use for throttling or "try again later".
_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class BrokerError(TraderError):
    """
    A failed broker call: transport failure or non-2xx response.

    `retryable` separates transient failures (network, timeouts, throttling, 5xx)
    from terminal ones (malformed order, insufficient buying power, duplicate
    client_order_id).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        if retryable is None:
            retryable = is_retryable_status(status_code)
        self.retryable = bool(retryable)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": str(self),
            "status_code": self.status_code,
            "retryable": self.retryable,
            "body": self.body,
        }


def is_retryable_status(status_code: Optional[int]) -> bool:
    """
    Classify an HTTP status for retry.

    `None` means no response was received at all (connection error, timeout).
    """
    if status_code is None:
        return True
    if status_code in _RETRYABLE_STATUS_CODES:
        return True
    return status_code >= 500
