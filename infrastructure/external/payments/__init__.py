"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import GatewaySettings, gateway_settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(settings: Optional[GatewaySettings] = None) -> PaymentGateway:
    from .straumur_client import StraumurClient
    return StraumurClient(settings or gateway_settings)
