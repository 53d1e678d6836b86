"""
Stored card tokens and subscriptions.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from datetime import datetime, timezone

from .base import Base


class PaymentTokenModel(Base):
    __tablename__ = "payment_tokens"
    __table_args__ = (
        UniqueConstraint("customer_id", "token", name="uq_payment_tokens_customer_token"),
    )

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, nullable=True, index=True, comment="customer id")
    token = Column(String(255), nullable=False, comment="gateway token")
    card_summary = Column(String(32), nullable=False, default="", comment="masked card number")
    gateway = Column(String(32), nullable=False, default="straumur")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class SubscriptionModel(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active", comment="subscription status")
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
