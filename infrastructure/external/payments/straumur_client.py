"""
Straumur hosted checkout adapter over plain JSON/HTTPS.

Every call sends ``Content-Type: application/json`` and ``X-API-key``. Ordinary
checkouts use the checkout terminal identifier; token (recurring) payments use
the gateway terminal identifier.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    SessionStatus,
    TokenPaymentRequest,
    TokenPaymentResult,
)
from core.logging_config import get_logger
from core.settings import GatewaySettings, gateway_settings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentProviderError
from shared.codes.payment_codes import RESULT_AUTHORISED, RESULT_REDIRECT_SHOPPER


logger = get_logger(__name__)

RECURRING_MODEL_SUBSCRIPTION = "Subscription"


def format_expires_at(moment: datetime) -> str:
    """UTC timestamp with millisecond precision, e.g. ``2025-01-31T12:00:00.000Z``"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class StraumurClient(BasePaymentClient):
    provider = "straumur"

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or gateway_settings
        super().__init__(
            base_url=self.settings.base_url,
            timeout=self.settings.request_timeout,
            headers={
                "Content-Type": "application/json",
                "X-API-key": self.settings.api_key,
            },
            transport=transport,
        )

    def _expires_at(self) -> str:
        hours = self.settings.checkout_expiry_hours
        return format_expires_at(datetime.now(timezone.utc) + timedelta(hours=hours))

    async def _send(self, endpoint: str, body: dict[str, Any]) -> Optional[Any]:
        try:
            return await self._post_json(endpoint, body)
        except PaymentProviderError as exc:
            logger.warning(
                "straumur_call_failed",
                endpoint=endpoint,
                error=exc.message,
                provider_code=(exc.details or {}).get("provider_code"),
            )
            return None

    async def create_session(self, req: CheckoutSessionRequest) -> Optional[CheckoutSession]:
        body: dict[str, Any] = {
            "amount": req.amount,
            "currency": req.currency,
            "returnUrl": req.return_url,
            "reference": req.reference,
            "terminalIdentifier": self.settings.terminal_identifier,
            "expiresAt": self._expires_at(),
        }
        if self.settings.send_items and req.items:
            body["items"] = [{"Name": item.name, "Amount": item.amount} for item in req.items]
        # theming is a production-only feature
        if not self.settings.test_mode and self.settings.theme_key:
            body["themeKey"] = self.settings.theme_key
        if self.settings.authorize_only:
            body["isManualCapture"] = True
        if req.is_subscription:
            body["recurringProcessingModel"] = RECURRING_MODEL_SUBSCRIPTION
        if req.abandon_url:
            body["abandonUrl"] = req.abandon_url

        data = await self._send("hostedcheckout/", body)
        if not isinstance(data, dict):
            return None
        url = data.get("url")
        checkout_reference = data.get("checkoutReference")
        if not url or not checkout_reference:
            logger.warning("straumur_session_incomplete", reference=req.reference)
            return None
        return CheckoutSession(url=str(url), checkout_reference=str(checkout_reference))

    async def get_status(self, checkout_reference: str) -> Optional[SessionStatus]:
        # the processor expects POST for this read
        data = await self._send(f"hostedcheckout/status/{checkout_reference}", {})
        if not isinstance(data, dict):
            return None
        payfac_reference = data.get("payfacReference")
        return SessionStatus(
            payfac_reference=str(payfac_reference) if payfac_reference else None,
            raw=data,
        )

    async def capture(
        self, payfac_reference: str, reference: str, amount: int, currency: str
    ) -> Optional[dict[str, Any]]:
        body = {
            "reference": reference,
            "payfacReference": payfac_reference,
            "amount": amount,
            "currency": currency,
        }
        data = await self._send("modification/capture", body)
        return data if isinstance(data, dict) else None

    async def refund(
        self, payfac_reference: str, reference: str, amount: int, currency: str
    ) -> Optional[dict[str, Any]]:
        body = {
            "reference": reference,
            "payfacReference": payfac_reference,
            "amount": amount,
            "currency": currency,
        }
        data = await self._send("modification/refund", body)
        return data if isinstance(data, dict) else None

    async def reverse(self, reference: str, payfac_reference: str) -> bool:
        body = {
            "reference": reference,
            "payfacReference": payfac_reference,
        }
        data = await self._send("modification/reverse", body)
        return bool(data)

    async def process_token_payment(self, req: TokenPaymentRequest) -> Optional[TokenPaymentResult]:
        body = {
            "terminalIdentifier": self.settings.gateway_terminal_identifier,
            "amount": req.amount,
            "currency": req.currency,
            "reference": req.reference,
            "shopperIp": req.shopper_ip,
            "origin": req.origin,
            "channel": req.channel,
            "returnUrl": req.return_url,
            "tokenDetails": {
                "tokenValue": req.token,
                "recurringProcessingModel": RECURRING_MODEL_SUBSCRIPTION,
            },
        }
        self._log("straumur_token_payment", reference=req.reference, amount=req.amount)
        data = await self._send("payment", body)
        if not isinstance(data, dict):
            return None

        result_code = str(data.get("resultCode") or "")
        if result_code == RESULT_AUTHORISED:
            self._log("straumur_token_payment_authorised", reference=req.reference)
        elif result_code == RESULT_REDIRECT_SHOPPER:
            self._log("straumur_token_payment_redirect", reference=req.reference)
        else:
            logger.error("straumur_token_payment_failed", reference=req.reference, result_code=result_code)

        redirect = data.get("redirect") or data.get("action")
        payfac_reference = data.get("payfacReference")
        return TokenPaymentResult(
            result_code=result_code,
            redirect=redirect if isinstance(redirect, dict) else None,
            payfac_reference=str(payfac_reference) if payfac_reference else None,
        )
