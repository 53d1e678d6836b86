"""
Merchant order routes: status changes and subscription renewal charges.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_order_service
from application.dtos.payments import OrderStatusChangeRequest, RenewalChargeRequest
from application.services.order_service import OrderService
from core.response import success_response


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/{order_id}/status", summary="Change order status")
async def change_order_status(
    order_id: int,
    payload: OrderStatusChangeRequest,
    service: OrderService = Depends(get_order_service),
):
    result = await service.change_status(order_id, payload.status, payload.note)
    return success_response(data=result.model_dump(mode="json"), message="Order status updated")


@router.post("/{order_id}/renewal-charge", summary="Charge a stored card for a renewal order")
async def renewal_charge(
    order_id: int,
    payload: RenewalChargeRequest,
    service: OrderService = Depends(get_order_service),
):
    result = await service.charge_renewal(order_id, payload)
    return success_response(data=result.model_dump(mode="json"), message="Renewal charge processed")
