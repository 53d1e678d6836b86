"""
Hosted checkout use-cases: starting a session and handling the shopper's return.

Neither use-case changes the order status. Authoritative payment state only
comes from webhooks; the return flow just records what the processor reports.
"""
from __future__ import annotations

from typing import Callable, Optional
from urllib.parse import urlencode

from application.dtos.payments import (
    CheckoutSessionRequest,
    CheckoutStartResponse,
    LineItem,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.return_token_service import ReturnTokenService
from core.logging_config import get_logger
from core.settings import GatewaySettings
from domain.common.exceptions import (
    CheckoutSessionException,
    DomainValidationException,
    InvalidReturnTokenException,
    OrderNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from domain.payment.state import load_payment_state, store_payment_state


logger = get_logger(__name__)

RETURN_PATH = "/api/v1/straumur/return"


def build_line_items(order: Order, expected_amount: int) -> list[LineItem]:
    """Line totals incl. tax; shipping becomes a ``Delivery`` line.

    Any rounding difference against ``expected_amount`` lands on the last line
    so the items always add up to the charged amount.
    """
    items = [LineItem(name=item.name, amount=item.total_minor) for item in order.items]
    if order.shipping_minor > 0:
        items.append(LineItem(name="Delivery", amount=order.shipping_minor))

    difference = expected_amount - sum(item.amount for item in items)
    if difference and items:
        items[-1] = LineItem(name=items[-1].name, amount=items[-1].amount + difference)
    return items


def _with_query(url: str, **params) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


class CheckoutService:
    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        gateway: PaymentGateway,
        settings: GatewaySettings,
        tokens: Optional[ReturnTokenService] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._settings = settings
        self._tokens = tokens or ReturnTokenService()

    def return_url(self, order_id: int) -> str:
        base = self._settings.public_base_url.rstrip("/") + RETURN_PATH
        return _with_query(base, order_id=order_id, token=self._tokens.create(order_id))

    async def start_checkout(self, order_id: int) -> CheckoutStartResponse:
        session = None
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_for_update(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            if order.is_paid():
                raise DomainValidationException(
                    "Order is already paid", field="order_id", details={"status": order.status.value}
                )

            is_subscription = bool(await uow.subscription_repository.list_for_order(order_id))
            request = CheckoutSessionRequest(
                amount=order.total_minor,
                currency=order.currency,
                return_url=self.return_url(order_id),
                reference=str(order_id),
                items=build_line_items(order, order.total_minor),
                is_subscription=is_subscription,
                abandon_url=self._settings.abandon_url or None,
            )

            state = load_payment_state(order)
            state.is_manual_capture = self._settings.authorize_only

            session = await self._gateway.create_session(request)
            if session is None:
                order.add_note("Unable to initiate Straumur payment session.")
            else:
                state.checkout_reference = session.checkout_reference
            store_payment_state(order, state)
            await uow.order_repository.save(order)

        if session is None:
            logger.error("checkout_session_failed", order_id=order_id)
            raise CheckoutSessionException(order_id)

        logger.info("checkout_session_created", order_id=order_id, checkout_reference=session.checkout_reference)
        return CheckoutStartResponse(
            order_id=order_id,
            redirect_url=session.url,
            checkout_reference=session.checkout_reference,
        )

    async def handle_return(
        self,
        order_id: int,
        token: str,
        checkout_reference: Optional[str] = None,
    ) -> str:
        """Process the shopper's return and give back the URL to redirect to."""
        try:
            self._tokens.verify(token, order_id)
        except InvalidReturnTokenException as exc:
            logger.warning("checkout_return_rejected", order_id=order_id, reason=(exc.details or {}).get("reason"))
            return self._settings.cart_url

        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_for_update(order_id)
            if order is None:
                logger.warning("checkout_return_unknown_order", order_id=order_id)
                return self._settings.cart_url

            state = load_payment_state(order)
            if checkout_reference and not state.checkout_reference:
                state.checkout_reference = checkout_reference
            reference = checkout_reference or state.checkout_reference
            if not reference:
                logger.info("checkout_return_without_reference", order_id=order_id)
                return self._settings.abandon_url or self._settings.cart_url

            status = await self._gateway.get_status(reference)
            if status is None:
                order.add_note("Unable to fetch payment status via Straumur.")
                store_payment_state(order, state)
                await uow.order_repository.save(order)
                logger.error("checkout_status_unavailable", order_id=order_id, checkout_reference=reference)
                return self._settings.abandon_url or self._settings.cart_url

            if not status.payfac_reference:
                # shopper cancelled or abandoned the hosted page
                store_payment_state(order, state)
                await uow.order_repository.save(order)
                logger.info("checkout_return_not_completed", order_id=order_id, checkout_reference=reference)
                return self._settings.abandon_url or self._settings.cart_url

            if not state.payfac_reference:
                state.payfac_reference = status.payfac_reference
            order.add_note(
                f"Payment pending, awaiting payment confirmation. Straumur Reference: {status.payfac_reference}"
            )
            store_payment_state(order, state)
            await uow.order_repository.save(order)

        logger.info("checkout_return_completed", order_id=order_id)
        return _with_query(self._settings.success_url, order_id=order_id)
