"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Every operation is a single request/response cycle. Transport failures,
non-2xx statuses and undecodable bodies all come back as ``None``/``False``.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    SessionStatus,
    TokenPaymentRequest,
    TokenPaymentResult,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Outbound command interface of the hosted checkout processor."""

    provider: str

    async def create_session(self, req: CheckoutSessionRequest) -> Optional[CheckoutSession]: ...

    async def get_status(self, checkout_reference: str) -> Optional[SessionStatus]: ...

    async def capture(
        self, payfac_reference: str, reference: str, amount: int, currency: str
    ) -> Optional[dict[str, Any]]: ...

    async def refund(
        self, payfac_reference: str, reference: str, amount: int, currency: str
    ) -> Optional[dict[str, Any]]: ...

    async def reverse(self, reference: str, payfac_reference: str) -> bool: ...

    async def process_token_payment(self, req: TokenPaymentRequest) -> Optional[TokenPaymentResult]: ...
