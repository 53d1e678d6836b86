"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, OrderItemModel, OrderNoteModel
from .payment_token import PaymentTokenModel, SubscriptionModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "OrderItemModel",
    "OrderNoteModel",
    "PaymentTokenModel",
    "SubscriptionModel",
]
