"""
Merchant-facing order use-cases: status changes and subscription renewal charges.
"""
from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from application.dtos.payments import (
    OrderStatusChangeResponse,
    RenewalChargeRequest,
    RenewalChargeResponse,
    TokenPaymentRequest,
    TokenPaymentResult,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.conflict_retry import retry_on_conflict
from application.services.order_lifecycle import GatewayCommand, OrderLifecycleBridge
from core.logging_config import get_logger
from core.settings import GatewaySettings
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import OrderStatus
from domain.payment.formatting import format_amount
from domain.payment.state import load_payment_state, store_payment_state
from shared.codes.payment_codes import RESULT_AUTHORISED, RESULT_REDIRECT_SHOPPER


logger = get_logger(__name__)


class OrderService:
    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        gateway: PaymentGateway,
        settings: GatewaySettings,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._settings = settings

    async def change_status(
        self, order_id: int, new_status: OrderStatus, note: Optional[str] = None
    ) -> OrderStatusChangeResponse:
        """Apply a merchant status change, then send the matching processor command.

        The status change and any request flag are committed before the
        processor is called; the outcome note is written afterwards.
        """
        bridge = OrderLifecycleBridge(self._gateway, self._uow_factory)
        async for attempt in retry_on_conflict():
            with attempt:
                previous, status, notes, command = await self._commit_status(order_id, new_status, note, bridge)

        if command is not None:
            notes.extend(await bridge.send(command))

        logger.info(
            "order_status_changed",
            order_id=order_id,
            previous_status=previous.value,
            status=status.value,
        )
        return OrderStatusChangeResponse(
            order_id=order_id,
            previous_status=previous,
            status=status,
            notes=notes,
        )

    async def _commit_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        note: Optional[str],
        bridge: OrderLifecycleBridge,
    ) -> Tuple[OrderStatus, OrderStatus, List[str], Optional[GatewayCommand]]:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_for_update(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)

            notes_before = len(order.notes)
            previous = order.status
            command = None
            changed = order.update_status(
                new_status,
                note or f"Order status changed from {previous.value} to {new_status.value}.",
            )
            if changed:
                command = bridge.prepare(order, previous, new_status)
            await uow.order_repository.save(order)
            return previous, order.status, [n.content for n in order.notes[notes_before:]], command

    async def charge_renewal(self, order_id: int, req: RenewalChargeRequest) -> RenewalChargeResponse:
        """Charge a renewal order with a stored card token.

        No transaction is held during the processor call; the result is
        recorded afterwards on a freshly read order.
        """
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)

        amount = req.amount or order.total_minor
        result = await self._gateway.process_token_payment(
            TokenPaymentRequest(
                token=req.token,
                amount=amount,
                currency=order.currency,
                reference=str(order_id),
                shopper_ip=req.shopper_ip or order.customer_ip or "",
                origin=req.origin or self._settings.public_base_url,
                channel="Web",
                return_url=self._settings.success_url,
            )
        )
        result_code = result.result_code if result else None

        async for attempt in retry_on_conflict():
            with attempt:
                status = await self._record_renewal(order_id, amount, result)

        logger.info("renewal_charge_processed", order_id=order_id, result_code=result_code)
        return RenewalChargeResponse(
            order_id=order_id,
            result_code=result_code,
            status=status,
            redirect=result.redirect if result else None,
        )

    async def _record_renewal(
        self, order_id: int, amount: int, result: Optional[TokenPaymentResult]
    ) -> OrderStatus:
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_for_update(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)

            display_amount = format_amount(amount, order.currency)
            result_code = result.result_code if result else None
            if result_code == RESULT_AUTHORISED:
                if result.payfac_reference:
                    # later capture/refund commands need the processor reference
                    state = load_payment_state(order)
                    if not state.payfac_reference:
                        state.payfac_reference = result.payfac_reference
                        store_payment_state(order, state)
                order.add_note(f"Subscription renewal of {display_amount} authorised via Straumur.")
            elif result_code == RESULT_REDIRECT_SHOPPER:
                order.add_note(
                    f"Subscription renewal of {display_amount} requires shopper action before it can be authorised."
                )
            else:
                order.update_status(
                    OrderStatus.FAILED,
                    f"Subscription renewal of {display_amount} failed via Straumur"
                    + (f" (result: {result_code})." if result_code else "."),
                )
            await uow.order_repository.save(order)
            return order.status
