"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import copy
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
# Never touch a file database from tests
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")

import pytest  # noqa: E402

from application.dtos.payments import (  # noqa: E402
    CheckoutSession,
    SessionStatus,
    TokenPaymentResult,
)
from core.settings import GatewaySettings  # noqa: E402
from domain.common.exceptions import ConcurrentOrderUpdateException  # noqa: E402
from domain.common.unit_of_work import AbstractUnitOfWork  # noqa: E402
from domain.order.entity import Order, OrderItem, OrderStatus  # noqa: E402
from domain.order.repository import (  # noqa: E402
    OrderRepository,
    PaymentTokenRepository,
    SubscriptionRepository,
)
from domain.payment.signature import compute_signature, decode_secret  # noqa: E402


HMAC_KEY_HEX = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


class InMemoryStore:
    """Committed state shared by every FakeUnitOfWork of one test."""

    def __init__(self):
        self.orders = {}
        self.tokens = []
        self.subscriptions = {}
        self.commits = 0
        self.rollbacks = 0
        self._next_note_id = 1

    def next_note_id(self) -> int:
        value = self._next_note_id
        self._next_note_id += 1
        return value

    def put(self, order: Order) -> Order:
        self.orders[order.id] = copy.deepcopy(order)
        return order


class FakeOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore, pending: dict):
        self.store = store
        self.pending = pending

    async def create(self, order):
        order.id = order.id or max(self.store.orders, default=0) + 1
        self.pending[order.id] = copy.deepcopy(order)
        return order

    async def get_by_id(self, order_id):
        order = self.pending.get(order_id) or self.store.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def get_for_update(self, order_id):
        return await self.get_by_id(order_id)

    async def save(self, order):
        current = self.pending.get(order.id) or self.store.orders.get(order.id)
        if current is None or current.version != order.version:
            raise ConcurrentOrderUpdateException(order.id)
        for note in order.notes:
            if note.id is None:
                note.id = self.store.next_note_id()
        order.version += 1
        self.pending[order.id] = copy.deepcopy(order)
        return order


class FakePaymentTokenRepository(PaymentTokenRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add(self, token):
        for existing in self.store.tokens:
            if existing.customer_id == token.customer_id and existing.token == token.token:
                return existing
        token.id = len(self.store.tokens) + 1
        self.store.tokens.append(token)
        return token

    async def list_for_customer(self, customer_id):
        return [t for t in self.store.tokens if t.customer_id == customer_id]


class FakeSubscriptionRepository(SubscriptionRepository):
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add(self, subscription):
        subscription.id = len(self.store.subscriptions) + 1
        self.store.subscriptions[subscription.id] = copy.deepcopy(subscription)
        return subscription

    async def list_for_order(self, order_id):
        return [copy.deepcopy(s) for s in self.store.subscriptions.values() if s.order_id == order_id]

    async def save(self, subscription):
        self.store.subscriptions[subscription.id] = copy.deepcopy(subscription)
        return subscription


class FakeUnitOfWork(AbstractUnitOfWork):
    """Stages order writes and publishes them to the store on commit."""

    def __init__(self, store: InMemoryStore):
        super().__init__()
        self.store = store
        self._pending = {}
        self.order_repository = FakeOrderRepository(store, self._pending)
        self.payment_token_repository = FakePaymentTokenRepository(store)
        self.subscription_repository = FakeSubscriptionRepository(store)

    async def commit(self):
        for order_id, order in self._pending.items():
            self.store.orders[order_id] = order
        self._pending.clear()
        self.store.commits += 1
        self._committed = True

    async def rollback(self):
        self._pending.clear()
        self.store.rollbacks += 1


class StubGateway:
    """Records every call and answers with configurable canned results."""

    provider = "straumur"

    def __init__(self):
        self.session = CheckoutSession(url="https://checkout.test/pay/CR-1", checkout_reference="CR-1")
        self.status = SessionStatus(payfac_reference="P1", raw={"payfacReference": "P1"})
        self.capture_result = {"result": "received"}
        self.refund_result = {"result": "received"}
        self.reverse_result = True
        self.token_result = TokenPaymentResult(result_code="Authorised", payfac_reference="P9")
        self.calls = []

    async def create_session(self, req):
        self.calls.append(("create_session", req))
        return self.session

    async def get_status(self, checkout_reference):
        self.calls.append(("get_status", checkout_reference))
        return self.status

    async def capture(self, payfac_reference, reference, amount, currency):
        self.calls.append(("capture", payfac_reference, reference, amount, currency))
        return self.capture_result

    async def refund(self, payfac_reference, reference, amount, currency):
        self.calls.append(("refund", payfac_reference, reference, amount, currency))
        return self.refund_result

    async def reverse(self, reference, payfac_reference):
        self.calls.append(("reverse", reference, payfac_reference))
        return self.reverse_result

    async def process_token_payment(self, req):
        self.calls.append(("process_token_payment", req))
        return self.token_result

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def gateway_config() -> GatewaySettings:
    return GatewaySettings(
        api_key="test-api-key",
        hmac_key=HMAC_KEY_HEX,
        terminal_identifier="term-1",
        gateway_terminal_identifier="gw-term-1",
        theme_key="theme-1",
        test_mode=True,
        success_url="https://shop.test/checkout/order-received",
        abandon_url="https://shop.test/checkout",
        cart_url="https://shop.test/cart",
        public_base_url="https://shop.test",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def make_order():
    def _make(order_id=42, status=OrderStatus.PENDING, total_minor=150000, currency="ISK", **kwargs):
        kwargs.setdefault("items", [OrderItem(name="Lopapeysa", quantity=1, total_minor=total_minor)])
        return Order(id=order_id, status=status, total_minor=total_minor, currency=currency, **kwargs)

    return _make


@pytest.fixture
def sign():
    """Attach a valid hmacSignature to a webhook payload."""
    key = decode_secret(HMAC_KEY_HEX)

    def _sign(payload: dict) -> dict:
        signed = dict(payload)
        signed["hmacSignature"] = compute_signature(signed, key)
        return signed

    return _sign
