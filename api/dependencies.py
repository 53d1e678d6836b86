"""
API依赖项 - 组装应用服务（组合根）
"""
from typing import AsyncGenerator, Callable

from fastapi import Depends

from application.ports.payment_gateway import PaymentGateway
from application.services.checkout_service import CheckoutService
from application.services.order_service import OrderService
from application.services.webhook_service import PaymentWebhookService
from core.settings import GatewaySettings, gateway_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def get_gateway_settings() -> GatewaySettings:
    return gateway_settings


def get_uow_factory() -> Callable[[], AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


async def get_gateway(
    settings: GatewaySettings = Depends(get_gateway_settings),
) -> AsyncGenerator[PaymentGateway, None]:
    """每个请求一个网关客户端，请求结束时关闭底层 HTTP 连接"""
    gateway = get_payment_gateway(settings)
    try:
        yield gateway
    finally:
        close = getattr(gateway, "aclose", None)
        if callable(close):
            await close()


async def get_webhook_service(
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
    settings: GatewaySettings = Depends(get_gateway_settings),
) -> PaymentWebhookService:
    return PaymentWebhookService(uow_factory=uow_factory, settings=settings)


async def get_checkout_service(
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: GatewaySettings = Depends(get_gateway_settings),
) -> CheckoutService:
    return CheckoutService(uow_factory=uow_factory, gateway=gateway, settings=settings)


async def get_order_service(
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: GatewaySettings = Depends(get_gateway_settings),
) -> OrderService:
    return OrderService(uow_factory=uow_factory, gateway=gateway, settings=settings)
