"""
SQLAlchemy repositories for orders, payment tokens and subscriptions
"""
import copy
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.logging_config import get_logger
from domain.common.exceptions import ConcurrentOrderUpdateException, OrderNotFoundException
from domain.order.entity import (
    Order,
    OrderItem,
    OrderNote,
    OrderStatus,
    PaymentToken,
    Subscription,
    SubscriptionStatus,
)
from domain.order.repository import (
    OrderRepository,
    PaymentTokenRepository,
    SubscriptionRepository,
)
from infrastructure.models.order import OrderItemModel, OrderModel, OrderNoteModel
from infrastructure.models.payment_token import PaymentTokenModel, SubscriptionModel


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """SQLAlchemy order repository.

    ``get_for_update`` locks the row with SELECT ... FOR UPDATE. ``save`` relies on the
    version column: of two writers on the same version the later one gets
    ConcurrentOrderUpdateException.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """Map a database row to the domain entity"""
        return Order(
            id=model.id,
            status=OrderStatus(model.status),
            total_minor=model.total_minor,
            currency=model.currency,
            customer_id=model.customer_id,
            needs_processing=model.needs_processing,
            shipping_minor=model.shipping_minor,
            customer_ip=model.customer_ip,
            items=[
                OrderItem(id=i.id, name=i.name, quantity=i.quantity, total_minor=i.total_minor)
                for i in model.items
            ],
            notes=[OrderNote(id=n.id, content=n.content, created_at=n.created_at) for n in model.notes],
            # deep copy so in-place edits on the entity cannot bypass change tracking
            meta=copy.deepcopy(model.meta or {}),
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def create(self, order: Order) -> Order:
        """Insert a new order"""
        db_order = OrderModel(
            status=order.status.value,
            total_minor=order.total_minor,
            currency=order.currency,
            customer_id=order.customer_id,
            customer_ip=order.customer_ip,
            needs_processing=order.needs_processing,
            shipping_minor=order.shipping_minor,
            meta=copy.deepcopy(order.meta),
            items=[
                OrderItemModel(name=i.name, quantity=i.quantity, total_minor=i.total_minor)
                for i in order.items
            ],
            notes=[OrderNoteModel(content=n.content, created_at=n.created_at) for n in order.notes],
        )
        self.session.add(db_order)
        await self.session.flush()
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Fetch an order by id"""
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_for_update(self, order_id: int) -> Optional[Order]:
        """Fetch and lock the order row. SQLite ignores FOR UPDATE; the version check still applies."""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def save(self, order: Order) -> Order:
        """Persist status, meta and new notes"""
        db_order = await self.session.get(OrderModel, order.id)
        if db_order is None:
            raise OrderNotFoundException(order.id)
        if db_order.version != order.version:
            logger.warning(
                "order_version_mismatch",
                order_id=order.id,
                expected=order.version,
                actual=db_order.version,
            )
            raise ConcurrentOrderUpdateException(order.id)

        db_order.status = order.status.value
        db_order.meta = copy.deepcopy(order.meta)

        pending = []
        for note in order.notes:
            if note.id is None:
                db_note = OrderNoteModel(content=note.content, created_at=note.created_at)
                db_order.notes.append(db_note)
                pending.append((note, db_note))

        try:
            await self.session.flush()
        except StaleDataError as exc:
            logger.warning("order_stale_update", order_id=order.id)
            raise ConcurrentOrderUpdateException(order.id) from exc

        for note, db_note in pending:
            note.id = db_note.id
        order.version = db_order.version
        return order


class SQLAlchemyPaymentTokenRepository(PaymentTokenRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: PaymentTokenModel) -> PaymentToken:
        return PaymentToken(
            id=model.id,
            customer_id=model.customer_id,
            token=model.token,
            card_summary=model.card_summary,
            gateway=model.gateway,
            created_at=model.created_at,
        )

    async def add(self, token: PaymentToken) -> PaymentToken:
        """A customer stores a given token once"""
        query = select(PaymentTokenModel).where(PaymentTokenModel.token == token.token)
        if token.customer_id is None:
            query = query.where(PaymentTokenModel.customer_id.is_(None))
        else:
            query = query.where(PaymentTokenModel.customer_id == token.customer_id)
        existing = (await self.session.execute(query)).scalars().first()
        if existing is not None:
            logger.info("payment_token_exists", customer_id=token.customer_id, token_id=existing.id)
            return self._to_entity(existing)

        db_token = PaymentTokenModel(
            customer_id=token.customer_id,
            token=token.token,
            card_summary=token.card_summary,
            gateway=token.gateway,
        )
        self.session.add(db_token)
        await self.session.flush()
        logger.info("payment_token_saved", customer_id=token.customer_id, token_id=db_token.id)
        return self._to_entity(db_token)

    async def list_for_customer(self, customer_id: int) -> List[PaymentToken]:
        result = await self.session.execute(
            select(PaymentTokenModel)
            .where(PaymentTokenModel.customer_id == customer_id)
            .order_by(PaymentTokenModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]


class SQLAlchemySubscriptionRepository(SubscriptionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: SubscriptionModel) -> Subscription:
        return Subscription(
            id=model.id,
            order_id=model.order_id,
            status=SubscriptionStatus(model.status),
            updated_at=model.updated_at,
        )

    async def add(self, subscription: Subscription) -> Subscription:
        db_sub = SubscriptionModel(order_id=subscription.order_id, status=subscription.status.value)
        self.session.add(db_sub)
        await self.session.flush()
        return self._to_entity(db_sub)

    async def list_for_order(self, order_id: int) -> List[Subscription]:
        result = await self.session.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.order_id == order_id)
            .order_by(SubscriptionModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def save(self, subscription: Subscription) -> Subscription:
        db_sub = await self.session.get(SubscriptionModel, subscription.id)
        if db_sub is None:
            raise ValueError(f"subscription {subscription.id} not found")
        db_sub.status = subscription.status.value
        await self.session.flush()
        return subscription
