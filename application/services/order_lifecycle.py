"""
Sends capture, refund and cancel commands when a merchant moves an order.

Only merchant-initiated transitions reach this bridge; status changes made
while reconciling webhooks never do. Every outcome becomes an order note, and
no call is retried automatically.

The work is split in two so no transaction stays open across the processor
call. ``prepare`` runs inside the status-change transaction and marks the
pending request on the order; once that is committed, ``send`` issues the call
and records its outcome in a fresh unit of work.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from application.ports.payment_gateway import PaymentGateway
from application.services.conflict_retry import DEFAULT_MAX_ATTEMPTS, retry_on_conflict
from core.logging_config import get_logger
from domain.common.exceptions import ConcurrentOrderUpdateException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.order.repository import SubscriptionRepository
from domain.payment.formatting import format_amount
from domain.payment.state import load_payment_state, store_payment_state


logger = get_logger(__name__)


class GatewayAction(str, Enum):
    CANCEL = "cancellation"
    CAPTURE = "capture"
    REFUND = "refund"


TRANSITIONS = {
    (OrderStatus.ON_HOLD, OrderStatus.CANCELLED): GatewayAction.CANCEL,
    (OrderStatus.ON_HOLD, OrderStatus.PROCESSING): GatewayAction.CAPTURE,
    (OrderStatus.ON_HOLD, OrderStatus.COMPLETED): GatewayAction.CAPTURE,
    (OrderStatus.PROCESSING, OrderStatus.REFUNDED): GatewayAction.REFUND,
    (OrderStatus.COMPLETED, OrderStatus.REFUNDED): GatewayAction.REFUND,
}


@dataclass(frozen=True)
class GatewayCommand:
    action: GatewayAction
    order_id: int
    payfac_reference: str
    amount: int
    currency: str

    @property
    def display_amount(self) -> str:
        return format_amount(self.amount, self.currency)


class OrderLifecycleBridge:
    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[[], AbstractUnitOfWork],
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._gateway = gateway
        self._uow_factory = uow_factory
        self._max_attempts = max_attempts

    def prepare(self, order: Order, old: OrderStatus, new: OrderStatus) -> Optional[GatewayCommand]:
        """Decide the command for a transition and mark it pending on ``order``.

        The caller must commit ``order`` before calling ``send``, so a webhook
        arriving during the processor call already sees the request flag.
        """
        action = TRANSITIONS.get((old, new))
        if action is None:
            return None

        state = load_payment_state(order)
        if not state.payfac_reference:
            order.add_note(
                f"Straumur {action.value} was not sent: this order has no Straumur payment reference."
            )
            logger.warning("straumur_missing_payfac_reference", order_id=order.id, action=action.value)
            return None

        # only a confirming webhook clears these flags
        if action is GatewayAction.CANCEL:
            state.cancel_requested = True
        elif action is GatewayAction.REFUND:
            state.refund_requested = True
        store_payment_state(order, state)

        return GatewayCommand(
            action=action,
            order_id=order.id,
            payfac_reference=state.payfac_reference,
            amount=order.total_minor,
            currency=order.currency,
        )

    async def send(self, command: GatewayCommand) -> List[str]:
        """Issue the command and note the outcome on the order. Never raises.

        Returns the notes that were recorded.
        """
        try:
            notes, refunded = await self._call(command)
        except Exception as exc:
            logger.error(
                "straumur_command_error",
                order_id=command.order_id,
                action=command.action.value,
                error=str(exc),
                exc_info=True,
            )
            notes, refunded = [self._failure_note(command)], False

        try:
            async for attempt in retry_on_conflict(self._max_attempts):
                with attempt:
                    return await self._record(command, notes, refunded)
        except ConcurrentOrderUpdateException:
            logger.error("straumur_command_outcome_conflict", order_id=command.order_id, notes=notes)
        except Exception as exc:
            logger.error(
                "straumur_command_outcome_error",
                order_id=command.order_id,
                notes=notes,
                error=str(exc),
                exc_info=True,
            )
        return []

    async def _call(self, command: GatewayCommand) -> Tuple[List[str], bool]:
        reference = str(command.order_id)
        payfac_reference = command.payfac_reference

        if command.action is GatewayAction.CANCEL:
            ok = await self._gateway.reverse(reference, payfac_reference)
            logger.info("straumur_cancel_requested", order_id=command.order_id, success=ok)
            if not ok:
                return [self._failure_note(command)], False
            return [f"Cancellation requested from Straumur. Reference: {payfac_reference}."], False

        if command.action is GatewayAction.CAPTURE:
            response = await self._gateway.capture(payfac_reference, reference, command.amount, command.currency)
            ok = response is not None
            logger.info(
                "straumur_capture_requested", order_id=command.order_id, amount=command.amount, success=ok
            )
            if not ok:
                return [self._failure_note(command)], False
            return [
                f"Capture of {command.display_amount} requested from Straumur. Reference: {payfac_reference}."
            ], False

        response = await self._gateway.refund(payfac_reference, reference, command.amount, command.currency)
        ok = response is not None
        logger.info("straumur_refund_requested", order_id=command.order_id, success=ok)
        if not ok:
            return [self._failure_note(command)], False
        return [
            f"Refund of {command.display_amount} requested from Straumur. Reference: {payfac_reference}."
        ], True

    @staticmethod
    def _failure_note(command: GatewayCommand) -> str:
        reference = command.payfac_reference
        if command.action is GatewayAction.CANCEL:
            return (
                f"Straumur cancellation request failed. Reference: {reference}. "
                "Change the order status again to retry."
            )
        if command.action is GatewayAction.CAPTURE:
            return f"Straumur capture of {command.display_amount} failed. Reference: {reference}."
        return f"Straumur refund of {command.display_amount} failed. Reference: {reference}."

    async def _record(self, command: GatewayCommand, notes: List[str], refunded: bool) -> List[str]:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_for_update(command.order_id)
            if order is None:
                logger.warning("straumur_command_order_missing", order_id=command.order_id)
                return []

            recorded = list(notes)
            for note in notes:
                order.add_note(note)
            if refunded:
                recorded.extend(await self._cancel_subscriptions(order, uow.subscription_repository))
            await uow.order_repository.save(order)
            return recorded

    async def _cancel_subscriptions(self, order: Order, subscriptions: SubscriptionRepository) -> List[str]:
        notes = []
        for subscription in await subscriptions.list_for_order(order.id):
            if subscription.cancel():
                await subscriptions.save(subscription)
                note = f"Subscription #{subscription.id} cancelled after refund."
                order.add_note(note)
                notes.append(note)
                logger.info("subscription_cancelled", order_id=order.id, subscription_id=subscription.id)
        return notes
