"""
Order tables (SQLAlchemy ORM models).
These are persistence details; the domain entities live in domain.order.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    Order row.

    ``version`` is the optimistic lock: UPDATE filters on it and SQLAlchemy raises
    StaleDataError when it no longer matches.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(String(20), nullable=False, index=True, comment="order status")
    total_minor = Column(Integer, nullable=False, comment="order total in minor units")
    currency = Column(String(3), nullable=False, comment="ISO 4217 currency")
    customer_id = Column(Integer, nullable=True, index=True, comment="customer id")
    customer_ip = Column(String(64), nullable=True, comment="customer ip at checkout")
    needs_processing = Column(Boolean, default=True, nullable=False, comment="order needs fulfilment")
    shipping_minor = Column(Integer, default=0, nullable=False, comment="shipping incl. tax")
    # payment state projection and other metadata
    meta = Column(JSON, nullable=False, default=dict, comment="order metadata")
    version = Column(Integer, nullable=False, default=1, comment="optimistic lock version")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="created at"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="updated at"
    )

    items = relationship(
        "OrderItemModel", cascade="all, delete-orphan", lazy="selectin", order_by="OrderItemModel.id"
    )
    notes = relationship(
        "OrderNoteModel", cascade="all, delete-orphan", lazy="selectin", order_by="OrderNoteModel.id"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<OrderModel(id={self.id}, status='{self.status}', version={self.version})>"


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False, comment="item name")
    quantity = Column(Integer, nullable=False, default=1, comment="quantity")
    total_minor = Column(Integer, nullable=False, comment="line total incl. tax")


class OrderNoteModel(Base):
    """Order note (append-only)"""
    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False, comment="note text")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
