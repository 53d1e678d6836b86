"""
Repository interfaces for orders, payment tokens and subscriptions
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Order, PaymentToken, Subscription


class OrderRepository(ABC):
    """Order persistence"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Insert a new order"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Fetch an order by id"""
        pass

    @abstractmethod
    async def get_for_update(self, order_id: int) -> Optional[Order]:
        """Fetch the order and lock it until the transaction ends"""
        pass

    @abstractmethod
    async def save(self, order: Order) -> Order:
        """Persist status, meta and new notes; raises ConcurrentOrderUpdateException on a version mismatch"""
        pass


class PaymentTokenRepository(ABC):

    @abstractmethod
    async def add(self, token: PaymentToken) -> PaymentToken:
        """Store a token; a customer stores a given token once"""
        pass

    @abstractmethod
    async def list_for_customer(self, customer_id: int) -> List[PaymentToken]:
        pass


class SubscriptionRepository(ABC):

    @abstractmethod
    async def add(self, subscription: Subscription) -> Subscription:
        """Insert a subscription"""
        pass

    @abstractmethod
    async def list_for_order(self, order_id: int) -> List[Subscription]:
        """Subscriptions attached to the order"""
        pass

    @abstractmethod
    async def save(self, subscription: Subscription) -> Subscription:
        pass
