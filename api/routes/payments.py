"""
Straumur payment routes.

Webhook, shopper return and checkout start. Keep this thin: all decisions live
in the application services.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from starlette import status as http_status

from api.dependencies import get_checkout_service, get_webhook_service
from application.services.checkout_service import CheckoutService
from application.services.webhook_service import PaymentWebhookService
from core.logging_config import get_logger
from core.response import success_response


router = APIRouter(prefix="/straumur", tags=["Straumur"])
logger = get_logger(__name__)


@router.post("/payment-callback", summary="Straumur webhook", status_code=http_status.HTTP_200_OK)
async def payment_callback(
    request: Request,
    service: PaymentWebhookService = Depends(get_webhook_service),
) -> Response:
    raw_body = await request.body()
    outcome = await service.handle(raw_body)
    logger.info("straumur_webhook_handled", outcome=outcome.value)
    # always an empty 200 so the processor does not retry aggressively
    return Response(status_code=http_status.HTTP_200_OK)


@router.get("/return", summary="Shopper return from hosted checkout")
async def checkout_return(
    order_id: int = Query(..., gt=0),
    token: str = Query(..., min_length=1),
    checkout_reference: Optional[str] = Query(default=None, alias="checkoutReference"),
    service: CheckoutService = Depends(get_checkout_service),
) -> RedirectResponse:
    url = await service.handle_return(order_id, token, checkout_reference)
    return RedirectResponse(url=url, status_code=http_status.HTTP_303_SEE_OTHER)


@router.post("/orders/{order_id}/checkout", summary="Start hosted checkout")
async def start_checkout(
    order_id: int,
    service: CheckoutService = Depends(get_checkout_service),
):
    result = await service.start_checkout(order_id)
    return success_response(data=result.model_dump(mode="json"), message="Checkout session created")
