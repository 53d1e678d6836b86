import jwt
import pytest

from application.services.return_token_service import RETURN_TOKEN_PURPOSE, ReturnTokenService
from domain.common.exceptions import InvalidReturnTokenException


def _reason(excinfo) -> str:
    return excinfo.value.details["reason"]


def test_token_round_trip():
    service = ReturnTokenService(secret_key="s3cret")
    token = service.create(42)
    service.verify(token, 42)

    payload = jwt.decode(token, "s3cret", algorithms=["HS256"])
    assert payload["sub"] == "42"
    assert payload["purpose"] == RETURN_TOKEN_PURPOSE
    assert payload["jti"]


def test_tokens_are_unique_per_issue():
    service = ReturnTokenService(secret_key="s3cret")
    assert service.create(42) != service.create(42)


def test_token_is_bound_to_order():
    service = ReturnTokenService(secret_key="s3cret")
    with pytest.raises(InvalidReturnTokenException) as excinfo:
        service.verify(service.create(42), 43)
    assert _reason(excinfo) == "order_mismatch"


def test_expired_token():
    service = ReturnTokenService(secret_key="s3cret", ttl_seconds=-10)
    with pytest.raises(InvalidReturnTokenException) as excinfo:
        service.verify(service.create(42), 42)
    assert _reason(excinfo) == "expired"


def test_token_signed_with_other_secret():
    token = ReturnTokenService(secret_key="other").create(42)
    with pytest.raises(InvalidReturnTokenException) as excinfo:
        ReturnTokenService(secret_key="s3cret").verify(token, 42)
    assert _reason(excinfo) == "invalid"


def test_token_with_other_purpose():
    token = jwt.encode({"sub": "42", "purpose": "access"}, "s3cret", algorithm="HS256")
    with pytest.raises(InvalidReturnTokenException) as excinfo:
        ReturnTokenService(secret_key="s3cret").verify(token, 42)
    assert _reason(excinfo) == "order_mismatch"


def test_default_secret_comes_from_settings():
    service = ReturnTokenService()
    service.verify(service.create(7), 7)
