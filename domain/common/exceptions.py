"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details=details,
        )


class ConcurrentOrderUpdateException(BusinessException):
    """Another writer updated the order between our read and our write."""

    def __init__(self, order_id: Optional[int] = None):
        super().__init__(
            code=BusinessCode.ORDER_CONFLICT,
            message="Order was modified concurrently",
            error_type="ConcurrentOrderUpdate",
            details={"order_id": order_id},
        )


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InvalidReturnTokenException(BusinessException):
    def __init__(self, reason: str = "invalid"):
        super().__init__(
            code=PaymentCode.RETURN_TOKEN_INVALID,
            message="Return token verification failed",
            error_type="InvalidReturnToken",
            details={"reason": reason},
        )


class CheckoutSessionException(BusinessException):
    def __init__(self, order_id: int, message: str = "Unable to initiate payment session"):
        super().__init__(
            code=PaymentCode.CHECKOUT_SESSION_FAILED,
            message=message,
            error_type="CheckoutSessionFailed",
            details={"order_id": order_id},
        )
