"""HMAC verification of inbound processor notifications."""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from typing import Any, Mapping, Optional

from .event import wire_text

SIGNED_FIELDS = (
    "checkoutReference",
    "payfacReference",
    "merchantReference",
    "amount",
    "currency",
    "reason",
    "success",
)


def build_signing_payload(data: Mapping[str, Any]) -> str:
    return ":".join(wire_text(data.get(name)) for name in SIGNED_FIELDS)


def decode_secret(secret_hex: str) -> Optional[bytes]:
    """Hex secret to raw key bytes; None when empty or not valid hex."""
    if not secret_hex or not secret_hex.strip():
        return None
    try:
        key = binascii.unhexlify(secret_hex.strip())
    except (binascii.Error, ValueError):
        return None
    return key or None


def compute_signature(data: Mapping[str, Any], key: bytes) -> str:
    digest = hmac.new(key, build_signing_payload(data).encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class SignatureVerifier:
    """Checks ``hmacSignature`` against the shared secret.

    Stateless after construction; safe to share between concurrent requests.
    Never raises: every failure is reported as ``False``.
    """

    def __init__(self, secret_hex: str):
        self._key = decode_secret(secret_hex)

    def verify(self, data: Mapping[str, Any], signature: Any) -> bool:
        if self._key is None:
            return False
        if not isinstance(signature, str) or not signature:
            return False
        expected = compute_signature(data, self._key)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
