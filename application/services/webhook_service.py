"""
Inbound webhook use-case: decode, authenticate, then reconcile under a row lock.

``handle`` never raises. The HTTP route answers 200 with an empty body
whatever the outcome; the outcome is only reported through logs.
"""
from __future__ import annotations

import json
from typing import Callable

from application.services.conflict_retry import DEFAULT_MAX_ATTEMPTS, retry_on_conflict
from application.services.webhook_reconciler import WebhookOutcome, WebhookReconciler
from core.logging_config import get_logger
from core.settings import GatewaySettings
from domain.common.exceptions import ConcurrentOrderUpdateException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.event import PaymentEvent
from domain.payment.signature import SignatureVerifier


logger = get_logger(__name__)


class PaymentWebhookService:
    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        settings: GatewaySettings,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._uow_factory = uow_factory
        self._settings = settings
        self._verifier = SignatureVerifier(settings.hmac_key)
        self._max_attempts = max_attempts

    async def handle(self, body: bytes) -> WebhookOutcome:
        logger.debug("straumur_webhook_received", size=len(body))
        try:
            data = json.loads(body)
        except ValueError:
            logger.warning("straumur_webhook_invalid_json")
            return WebhookOutcome.MALFORMED
        if not isinstance(data, dict):
            logger.warning("straumur_webhook_invalid_json")
            return WebhookOutcome.MALFORMED

        signature = data.get("hmacSignature")
        if not signature:
            logger.warning("straumur_webhook_missing_signature")
            return WebhookOutcome.REJECTED
        if not self._verifier.verify(data, signature):
            logger.warning("straumur_webhook_invalid_signature", merchant_reference=data.get("merchantReference"))
            return WebhookOutcome.REJECTED

        try:
            event = PaymentEvent.from_payload(data)
        except Exception as exc:
            logger.warning("straumur_webhook_invalid_payload", error=str(exc))
            return WebhookOutcome.MALFORMED
        order_id = event.order_id
        if order_id is None:
            logger.warning("straumur_webhook_invalid_merchant_reference", merchant_reference=event.merchant_reference)
            return WebhookOutcome.MALFORMED

        try:
            async for attempt in retry_on_conflict(self._max_attempts):
                with attempt:
                    return await self._apply(order_id, event)
        except ConcurrentOrderUpdateException:
            logger.error("straumur_webhook_conflict", order_id=order_id, event_key=event.key)
            return WebhookOutcome.CONFLICT
        except Exception as exc:
            # the processor must always get a flat 200; failures live in the logs
            logger.error("straumur_webhook_processing_error", order_id=order_id, error=str(exc), exc_info=True)
            return WebhookOutcome.ERROR
        return WebhookOutcome.ERROR

    async def _apply(self, order_id: int, event: PaymentEvent) -> WebhookOutcome:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_for_update(order_id)
            if order is None:
                logger.warning("straumur_webhook_unknown_order", order_id=order_id)
                return WebhookOutcome.UNKNOWN_ORDER

            reconciler = WebhookReconciler(self._settings, uow.payment_token_repository)
            outcome = await reconciler.apply(order, event)
            if outcome is not WebhookOutcome.DUPLICATE:
                await uow.order_repository.save(order)
            return outcome
