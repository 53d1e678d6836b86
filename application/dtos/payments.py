"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

from domain.order.entity import OrderStatus

# Currencies accepted by the hosted checkout (extend as needed)
ISO_4217 = {
    "ISK", "EUR", "USD", "GBP", "DKK", "NOK", "SEK", "CHF", "CAD", "PLN",
}


def _upper_and_validate_currency(v: str) -> str:
    u = (v or "").upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    if u not in ISO_4217:
        raise ValueError("unsupported currency")
    return u


class LineItem(BaseModel):
    """One checkout line; amount is the line total including tax, in minor units."""

    name: str
    amount: int


class CheckoutSessionRequest(BaseModel):
    amount: int = Field(gt=0)
    currency: str
    return_url: str
    reference: str
    items: list[LineItem] = Field(default_factory=list)
    is_subscription: bool = False
    abandon_url: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _currency(cls, v: str) -> str:
        return _upper_and_validate_currency(v)


class CheckoutSession(BaseModel):
    url: str
    checkout_reference: str


class SessionStatus(BaseModel):
    """Hosted checkout status; no payfac_reference means never authorized."""

    payfac_reference: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class TokenPaymentRequest(BaseModel):
    token: str
    amount: int = Field(gt=0)
    currency: str
    reference: str
    shopper_ip: str = ""
    origin: str = ""
    channel: str = "Web"
    return_url: str = ""

    @field_validator("currency")
    @classmethod
    def _currency(cls, v: str) -> str:
        return _upper_and_validate_currency(v)


class TokenPaymentResult(BaseModel):
    result_code: str
    redirect: Optional[dict[str, Any]] = None
    payfac_reference: Optional[str] = None


# ---- API request/response bodies ----

class CheckoutStartResponse(BaseModel):
    order_id: int
    redirect_url: str
    checkout_reference: str


class OrderStatusChangeRequest(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class OrderStatusChangeResponse(BaseModel):
    order_id: int
    previous_status: OrderStatus
    status: OrderStatus
    notes: list[str] = Field(default_factory=list)


class RenewalChargeRequest(BaseModel):
    token: str
    amount: Optional[int] = Field(default=None, gt=0)
    shopper_ip: str = ""
    origin: str = ""


class RenewalChargeResponse(BaseModel):
    order_id: int
    result_code: Optional[str] = None
    status: OrderStatus
    redirect: Optional[dict[str, Any]] = None
