"""Per-order payment projection stored in the order's metadata."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Optional

from domain.order.entity import Order, PAYMENT_STATE_META_KEY


class ProcessedEventKeys:
    """Append-only set of event keys already applied to an order.

    Insertion order is kept so the persisted list reads as an audit trail.
    """

    def __init__(self, keys: Iterable[str] = ()):
        self._keys: list[str] = []
        self._index: set[str] = set()
        for key in keys:
            self.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, key: str) -> bool:
        """Return True when the key was not present before."""
        if key in self._index:
            return False
        self._index.add(key)
        self._keys.append(key)
        return True


@dataclass
class OrderPaymentState:
    is_manual_capture: bool = False
    checkout_reference: str = ""
    payfac_reference: str = ""
    processed_event_keys: ProcessedEventKeys = field(default_factory=ProcessedEventKeys)
    last_raw_event: Optional[dict[str, Any]] = None
    refund_requested: bool = False
    cancel_requested: bool = False

    @classmethod
    def from_meta(cls, meta: Optional[Mapping[str, Any]]) -> "OrderPaymentState":
        data = (meta or {}).get(PAYMENT_STATE_META_KEY) or {}
        return cls(
            is_manual_capture=bool(data.get("is_manual_capture", False)),
            checkout_reference=data.get("checkout_reference") or "",
            payfac_reference=data.get("payfac_reference") or "",
            processed_event_keys=ProcessedEventKeys(data.get("processed_event_keys") or ()),
            last_raw_event=data.get("last_raw_event"),
            refund_requested=bool(data.get("refund_requested", False)),
            cancel_requested=bool(data.get("cancel_requested", False)),
        )

    def to_meta(self) -> dict[str, Any]:
        return {
            "is_manual_capture": self.is_manual_capture,
            "checkout_reference": self.checkout_reference,
            "payfac_reference": self.payfac_reference,
            "processed_event_keys": list(self.processed_event_keys),
            "last_raw_event": self.last_raw_event,
            "refund_requested": self.refund_requested,
            "cancel_requested": self.cancel_requested,
        }


def load_payment_state(order: Order) -> OrderPaymentState:
    return OrderPaymentState.from_meta(order.meta)


def store_payment_state(order: Order, state: OrderPaymentState) -> None:
    # reassign so ORM change tracking sees a new JSON value
    meta = dict(order.meta)
    meta[PAYMENT_STATE_META_KEY] = state.to_meta()
    order.meta = meta
