"""
Inbound payload → `TradeMessage`.

Decoding is an explicit, ordered chain:
1. UTF-8 text (else `InvalidTextError`)
2. JSON, with numbers that carry a fraction parsed as `Decimal` so prices are
   never rounded through binary floats
3. The `action`-discriminated shape (`TRADE_MESSAGE_V1`)
4. Only when enabled: the legacy bare-intent shape (`BareIntentV0`)

Anything else is a `SchemaMismatchError`. The decoder never raises anything
other than a `DecodeError` subclass.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from trader.common.errors import EmptyMessageError, InvalidTextError, SchemaMismatchError
from trader.intents.models import TradeMessage
from trader.intents.schema import TRADE_MESSAGE_V1, BareIntentV0


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite JSON number: {name}")


def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors()[:5]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc or '<root>'}: {err.get('msg')}")
    return "; ".join(parts)


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text, parse_float=Decimal, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise SchemaMismatchError(f"Payload is not valid JSON: {e}") from e


def decode(payload: Optional[bytes], *, allow_legacy_bare_intent: bool = False) -> TradeMessage:
    if not payload:
        raise EmptyMessageError()

    try:
        text = bytes(payload).decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidTextError(f"Payload is not valid UTF-8: {e}") from e

    data = _parse_json(text)
    if not isinstance(data, dict):
        raise SchemaMismatchError(f"Payload must be a JSON object, got {type(data).__name__}")

    if "action" in data or not allow_legacy_bare_intent:
        try:
            return TRADE_MESSAGE_V1.validate_python(data).to_message()
        except (ValidationError, ValueError) as e:
            detail = _summarize(e) if isinstance(e, ValidationError) else str(e)
            raise SchemaMismatchError(f"Payload does not match a trade message: {detail}") from e

    try:
        return BareIntentV0.model_validate(data).to_message()
    except (ValidationError, ValueError) as e:
        detail = _summarize(e) if isinstance(e, ValidationError) else str(e)
        raise SchemaMismatchError(f"Payload does not match a legacy trade intent: {detail}") from e
