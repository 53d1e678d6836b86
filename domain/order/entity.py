"""
Order entities. Payment reconciliation only touches status, meta and notes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class OrderStatus(str, Enum):
    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


PAID_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.COMPLETED})

# key of the payment state projection inside Order.meta
PAYMENT_STATE_META_KEY = "straumur_payment"


@dataclass
class OrderItem:
    """Order line; total is tax-inclusive, in minor units"""

    name: str
    quantity: int
    total_minor: int
    id: Optional[int] = None


@dataclass
class OrderNote:
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None


@dataclass
class Order:
    """An order.

    The status set is fixed. Every change leaves a note for the merchant.
    """

    id: Optional[int]
    status: OrderStatus
    total_minor: int
    currency: str
    customer_id: Optional[int] = None
    needs_processing: bool = True
    shipping_minor: int = 0
    customer_ip: Optional[str] = None
    items: list[OrderItem] = field(default_factory=list)
    notes: list[OrderNote] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, str) and not isinstance(self.status, OrderStatus):
            self.status = OrderStatus(self.status)
        if self.total_minor < 0:
            raise ValueError("order total must not be negative")
        self.currency = (self.currency or "").upper()

    def is_paid(self) -> bool:
        return self.status in PAID_STATUSES

    def add_note(self, content: str) -> OrderNote:
        """Append a note; notes are never removed"""
        note = OrderNote(content=content)
        self.notes.append(note)
        return note

    def update_status(self, new_status: OrderStatus, note: Optional[str] = None) -> bool:
        """Move to ``new_status`` with an optional note; False when the status is unchanged"""
        if note:
            self.add_note(note)
        if self.status == new_status:
            return False
        self.status = new_status
        self.updated_at = datetime.now(timezone.utc)
        return True


@dataclass
class PaymentToken:
    """Card token kept for subscription renewals; only the masked card number is stored"""

    customer_id: Optional[int]
    token: str
    card_summary: str = ""
    gateway: str = "straumur"
    id: Optional[int] = None
    created_at: Optional[datetime] = None


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


@dataclass
class Subscription:
    id: Optional[int]
    order_id: int
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    updated_at: Optional[datetime] = None

    def cancel(self) -> bool:
        if self.status == SubscriptionStatus.CANCELLED:
            return False
        self.status = SubscriptionStatus.CANCELLED
        self.updated_at = datetime.now(timezone.utc)
        return True
