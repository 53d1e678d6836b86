"""
Signed return-link tokens for the hosted checkout redirect (JWT bound to one order, with expiry)
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

import jwt

from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import InvalidReturnTokenException


logger = get_logger(__name__)

RETURN_TOKEN_PURPOSE = "straumur_return"


class ReturnTokenService:
    """Issues and checks return tokens; each token is bound to one order id"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.RETURN_TOKEN_TTL_SECONDS

    def create(self, order_id: int) -> str:
        """Create a return token"""
        expire = datetime.now(timezone.utc) + timedelta(seconds=self._ttl_seconds)
        to_encode = {
            "sub": str(order_id),
            "purpose": RETURN_TOKEN_PURPOSE,
            "exp": expire,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str, order_id: int) -> None:
        """Check a token; raises InvalidReturnTokenException when it does not match"""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("return_token_expired", order_id=order_id)
            raise InvalidReturnTokenException("expired")
        except jwt.PyJWTError:
            logger.info("return_token_invalid", order_id=order_id)
            raise InvalidReturnTokenException("invalid")

        if payload.get("purpose") != RETURN_TOKEN_PURPOSE or payload.get("sub") != str(order_id):
            logger.info("return_token_mismatch", order_id=order_id)
            raise InvalidReturnTokenException("order_mismatch")
