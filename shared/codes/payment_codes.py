"""
Payment specific codes and processor vocabulary.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    CHECKOUT_SESSION_FAILED = 60010
    RETURN_TOKEN_INVALID = 60011


# Straumur token payment result codes
RESULT_AUTHORISED = "Authorised"
RESULT_REDIRECT_SHOPPER = "RedirectShopper"

# Failure reasons with a dedicated merchant-facing explanation
FAILURE_REASON_MESSAGES = {
    "Refused": "The payment was refused by the card issuer.",
    "Expired Card": "The card used for the payment has expired.",
    "3D Not Authenticated": "The shopper did not complete 3-D Secure authentication.",
}
