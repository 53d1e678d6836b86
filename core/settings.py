"""
Straumur gateway settings using pydantic-settings v2 (env prefix ``STRAUMUR_``).

Kept apart from core.config.Settings: the application settings describe the
service itself, these describe one merchant's processor configuration.
"""
from __future__ import annotations

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STAGING_BASE_URL = "https://checkout-api.staging.straumur.is/api/v1/"
DEFAULT_PRODUCTION_URL = "https://greidslugatt.straumur.is/api/v1/"

# Hosted checkout sessions live between 5 minutes and 24 hours.
MIN_CHECKOUT_EXPIRY_HOURS = 0.0833
MAX_CHECKOUT_EXPIRY_HOURS = 24.0


class GatewaySettings(BaseSettings):
    api_key: str = ""
    hmac_key: str = ""
    terminal_identifier: str = ""
    gateway_terminal_identifier: str = ""
    theme_key: str = ""

    authorize_only: bool = False
    send_items: bool = False
    checkout_expiry_hours: float = 24.0
    test_mode: bool = True
    production_url: str = DEFAULT_PRODUCTION_URL
    mark_paid_as_completed: bool = False

    success_url: str = "http://localhost:8000/checkout/order-received"
    abandon_url: str = "http://localhost:8000/checkout"
    cart_url: str = "http://localhost:8000/cart"
    public_base_url: str = "http://localhost:8000"

    request_timeout: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STRAUMUR_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("checkout_expiry_hours", mode="after")
    @classmethod
    def _clamp_expiry(cls, v: float) -> float:
        return min(max(v, MIN_CHECKOUT_EXPIRY_HOURS), MAX_CHECKOUT_EXPIRY_HOURS)

    @model_validator(mode="after")
    def _validate_production_url(self):
        if not self.test_mode and not self.production_url.strip():
            raise ValueError("STRAUMUR_PRODUCTION_URL must be set when test mode is off")
        return self

    @property
    def base_url(self) -> str:
        if self.test_mode:
            return STAGING_BASE_URL
        return self.production_url.rstrip("/") + "/"


gateway_settings = GatewaySettings()
