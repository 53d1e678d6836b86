"""Inbound processor notifications and their deduplication identity."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class EventType(str, Enum):
    AUTHORIZATION = "authorization"
    CAPTURE = "capture"
    REFUND = "refund"
    TOKENIZATION = "tokenization"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "EventType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


def wire_text(value: Any) -> str:
    """Render a JSON scalar the way it appeared on the wire.

    Strings pass through untouched; numbers and booleans use their JSON
    spelling (``true``, ``150000``); missing values become ``""``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return str(value)


def _parse_amount(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    try:
        amount = int(value) if not isinstance(value, str) else int(value.strip() or 0)
    except (TypeError, ValueError, OverflowError):
        try:
            amount = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0
    return max(amount, 0)


def _parse_success(value: Any) -> bool:
    # only an explicit false marks the failure path; absent means success
    if value is False:
        return False
    if isinstance(value, str) and value.strip().lower() == "false":
        return False
    return True


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


@dataclass(frozen=True)
class PaymentEvent:
    """One decoded notification.

    ``event_name`` keeps the lowercased type as sent, so types we do not
    handle still produce distinct event keys.
    """

    merchant_reference: str
    payfac_reference: str
    event_name: str
    original_payfac_reference: str
    amount: int
    currency: str
    success: bool
    reason: str = ""
    auth_code: str = ""
    card_summary: str = ""
    three_d_authenticated: bool = False
    token: str = ""
    checkout_reference: str = ""
    hmac_signature: str = ""
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def event_type(self) -> EventType:
        return EventType.parse(self.event_name)

    @property
    def order_id(self) -> Optional[int]:
        """merchantReference as a positive order id, or None"""
        try:
            value = int(self.merchant_reference.strip())
        except ValueError:
            return None
        return value if value > 0 else None

    @property
    def key(self) -> str:
        return derive_event_key(self)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "PaymentEvent":
        """Build an event from the decoded JSON body.

        Detail fields are read from ``additionalData`` first and fall back to
        the top level.
        """
        extra = data.get("additionalData")
        if not isinstance(extra, Mapping):
            extra = {}

        def detail(name: str) -> Any:
            value = extra.get(name)
            return data.get(name) if value is None else value

        event_name = wire_text(detail("eventType")).strip().lower() or EventType.UNKNOWN.value
        card = detail("cardSummary")
        if card is None:
            card = detail("cardNumber")

        return cls(
            merchant_reference=wire_text(data.get("merchantReference")),
            payfac_reference=wire_text(data.get("payfacReference")),
            event_name=event_name,
            original_payfac_reference=wire_text(detail("originalPayfacReference")),
            amount=_parse_amount(data.get("amount")),
            currency=wire_text(data.get("currency")).upper(),
            success=_parse_success(data.get("success")),
            reason=wire_text(data.get("reason")),
            auth_code=wire_text(detail("authCode")),
            card_summary=wire_text(card),
            three_d_authenticated=_parse_flag(detail("threeDAuthenticated")),
            token=wire_text(detail("token")),
            checkout_reference=wire_text(data.get("checkoutReference")),
            hmac_signature=wire_text(data.get("hmacSignature")),
            raw=dict(data),
        )


def derive_event_key(event: PaymentEvent) -> str:
    """``payfacReference:eventType:originalPayfacReference:amount``; empty segments are kept."""
    return ":".join(
        (
            event.payfac_reference,
            event.event_name or EventType.UNKNOWN.value,
            event.original_payfac_reference,
            str(event.amount),
        )
    )
