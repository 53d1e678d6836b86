"""
Applies a verified Straumur notification to an order.

The reconciler holds no state between calls: everything it needs is the
order, the event and the gateway settings. Each successful financial fact is
applied at most once per order, keyed by ``PaymentEvent.key``.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from core.logging_config import get_logger
from core.settings import GatewaySettings
from domain.order.entity import Order, OrderStatus, PaymentToken
from domain.order.repository import PaymentTokenRepository
from domain.payment.event import EventType, PaymentEvent
from domain.payment.formatting import format_amount, mask_card_number
from domain.payment.state import OrderPaymentState, load_payment_state, store_payment_state
from shared.codes.payment_codes import FAILURE_REASON_MESSAGES


logger = get_logger(__name__)


class WebhookOutcome(str, Enum):
    MALFORMED = "malformed"
    REJECTED = "rejected"
    UNKNOWN_ORDER = "unknown_order"
    DUPLICATE = "duplicate"
    FAILURE_RECORDED = "failure_recorded"
    STALE = "stale"
    APPLIED = "applied"
    CONFLICT = "conflict"
    ERROR = "error"


def paid_status(order: Order, settings: GatewaySettings) -> OrderStatus:
    """Status for a paid order: completed when configured so or nothing needs shipping."""
    if settings.mark_paid_as_completed or not order.needs_processing:
        return OrderStatus.COMPLETED
    return OrderStatus.PROCESSING


def failure_note(event: PaymentEvent) -> str:
    event_label = event.event_name.capitalize() if event.event_name else "Unknown"
    reason = event.reason or "Transaction failed"
    explanation = FAILURE_REASON_MESSAGES.get(reason)
    if explanation:
        return f"Straumur {event_label} failed: {explanation} Reference: {event.payfac_reference}"
    return f"Straumur {event_label} failed: {reason}. Reference: {event.payfac_reference}"


class WebhookReconciler:
    def __init__(
        self,
        settings: GatewaySettings,
        token_repository: Optional[PaymentTokenRepository] = None,
    ) -> None:
        self._settings = settings
        self._tokens = token_repository

    async def apply(self, order: Order, event: PaymentEvent) -> WebhookOutcome:
        if not event.success:
            # failures are informational: no dedup, no status change
            order.add_note(failure_note(event))
            logger.info(
                "straumur_webhook_failure_recorded",
                order_id=order.id,
                event_type=event.event_name,
                reason=event.reason,
            )
            return WebhookOutcome.FAILURE_RECORDED

        state = load_payment_state(order)
        key = event.key
        if key in state.processed_event_keys:
            logger.info("straumur_webhook_duplicate", order_id=order.id, event_key=key)
            return WebhookOutcome.DUPLICATE

        state.processed_event_keys.add(key)
        state.last_raw_event = dict(event.raw)

        handler = {
            EventType.AUTHORIZATION: self._on_authorization,
            EventType.CAPTURE: self._on_capture,
            EventType.REFUND: self._on_refund,
            EventType.TOKENIZATION: self._on_tokenization,
        }.get(event.event_type, self._on_unknown)
        outcome = await handler(order, event, state)

        store_payment_state(order, state)
        logger.info(
            "straumur_webhook_applied",
            order_id=order.id,
            event_key=key,
            outcome=outcome.value,
            status=order.status.value,
        )
        return outcome

    async def _on_authorization(
        self, order: Order, event: PaymentEvent, state: OrderPaymentState
    ) -> WebhookOutcome:
        if order.is_paid():
            logger.info("straumur_stale_authorization_ignored", order_id=order.id, status=order.status.value)
            return WebhookOutcome.STALE

        if not state.payfac_reference:
            state.payfac_reference = event.payfac_reference

        three_d = "verified by 3D Secure" if event.three_d_authenticated else "not verified by 3D Secure"
        summary = (
            f"{format_amount(event.amount, event.currency)} was successfully authorized to card "
            f"{mask_card_number(event.card_summary)}, {three_d}.\n"
            f"Auth code is {event.auth_code}.\n\n"
        )
        if state.is_manual_capture:
            order.update_status(
                OrderStatus.ON_HOLD,
                summary + "This authorization can be cancelled or captured.",
            )
        else:
            order.update_status(
                paid_status(order, self._settings),
                summary + "This transaction has been captured and can be refunded if needed.",
            )
        return WebhookOutcome.APPLIED

    async def _on_capture(
        self, order: Order, event: PaymentEvent, state: OrderPaymentState
    ) -> WebhookOutcome:
        if order.is_paid():
            logger.info("straumur_stale_capture_ignored", order_id=order.id, status=order.status.value)
            return WebhookOutcome.STALE

        if not state.payfac_reference:
            state.payfac_reference = event.original_payfac_reference or event.payfac_reference

        order.update_status(
            paid_status(order, self._settings),
            f"Manual capture completed for {format_amount(event.amount, event.currency)} via Straumur. "
            f"Reference: {event.payfac_reference}.",
        )
        return WebhookOutcome.APPLIED

    async def _on_refund(
        self, order: Order, event: PaymentEvent, state: OrderPaymentState
    ) -> WebhookOutcome:
        # refund events never change status; the merchant-initiated flow already did
        display_amount = format_amount(event.amount, event.currency)
        if state.refund_requested:
            order.add_note(
                f"A refund amount of {display_amount} has been processed by Straumur. "
                f"Reference: {event.payfac_reference}"
            )
            state.refund_requested = False
        elif state.cancel_requested:
            order.add_note(f"Cancellation confirmed by Straumur. Reference: {event.payfac_reference}.")
            state.cancel_requested = False
        else:
            order.add_note(f"Straumur refund/cancellation {display_amount} (unknown type)")
        return WebhookOutcome.APPLIED

    async def _on_tokenization(
        self, order: Order, event: PaymentEvent, state: OrderPaymentState
    ) -> WebhookOutcome:
        card = mask_card_number(event.card_summary)
        if not event.token:
            order.add_note("Straumur tokenization event received without a token; nothing was saved.")
            return WebhookOutcome.APPLIED

        if self._tokens is not None:
            await self._tokens.add(
                PaymentToken(customer_id=order.customer_id, token=event.token, card_summary=card)
            )
        order.add_note(f"Card {card} saved for future subscription payments via Straumur.")
        return WebhookOutcome.APPLIED

    async def _on_unknown(
        self, order: Order, event: PaymentEvent, state: OrderPaymentState
    ) -> WebhookOutcome:
        order.add_note("Unknown Straumur event type received.")
        logger.info("straumur_unknown_event_type", order_id=order.id, event_type=event.event_name)
        return WebhookOutcome.APPLIED
