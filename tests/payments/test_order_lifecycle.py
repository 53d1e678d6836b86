import pytest

from application.services.order_lifecycle import GatewayAction, GatewayCommand, OrderLifecycleBridge
from domain.common.exceptions import ConcurrentOrderUpdateException
from domain.order.entity import OrderStatus, Subscription, SubscriptionStatus
from domain.payment.state import load_payment_state, store_payment_state


def _authorized(order, payfac_reference="P1"):
    state = load_payment_state(order)
    state.payfac_reference = payfac_reference
    store_payment_state(order, state)
    return order


def _command(action, amount=150000):
    return GatewayCommand(action=action, order_id=42, payfac_reference="P1", amount=amount, currency="ISK")


@pytest.fixture
def bridge(gateway, uow_factory):
    return OrderLifecycleBridge(gateway, uow_factory)


def test_prepare_cancel_marks_request(bridge, make_order):
    order = _authorized(make_order(status=OrderStatus.CANCELLED))

    command = bridge.prepare(order, OrderStatus.ON_HOLD, OrderStatus.CANCELLED)

    assert command == _command(GatewayAction.CANCEL)
    assert load_payment_state(order).cancel_requested is True
    assert load_payment_state(order).refund_requested is False


def test_prepare_refund_marks_request(bridge, make_order):
    order = _authorized(make_order(status=OrderStatus.REFUNDED))

    command = bridge.prepare(order, OrderStatus.COMPLETED, OrderStatus.REFUNDED)

    assert command.action is GatewayAction.REFUND
    assert load_payment_state(order).refund_requested is True


@pytest.mark.parametrize("target", [OrderStatus.PROCESSING, OrderStatus.COMPLETED])
def test_prepare_capture_sets_no_flag(bridge, make_order, target):
    order = _authorized(make_order(status=target))

    command = bridge.prepare(order, OrderStatus.ON_HOLD, target)

    assert command.action is GatewayAction.CAPTURE
    state = load_payment_state(order)
    assert (state.cancel_requested, state.refund_requested) == (False, False)


def test_prepare_without_payfac_reference_only_notes(bridge, gateway, make_order):
    order = make_order(status=OrderStatus.CANCELLED)

    assert bridge.prepare(order, OrderStatus.ON_HOLD, OrderStatus.CANCELLED) is None
    assert order.notes[-1].content == (
        "Straumur cancellation was not sent: this order has no Straumur payment reference."
    )
    assert load_payment_state(order).cancel_requested is False
    assert gateway.calls == []


@pytest.mark.parametrize(
    "old, new",
    [
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.COMPLETED),
        (OrderStatus.ON_HOLD, OrderStatus.REFUNDED),
        (OrderStatus.FAILED, OrderStatus.PENDING),
    ],
)
def test_other_transitions_send_nothing(bridge, make_order, old, new):
    order = _authorized(make_order(status=new))
    assert bridge.prepare(order, old, new) is None
    assert order.notes == []


@pytest.mark.asyncio
async def test_send_cancel_notes_success(bridge, gateway, store, make_order):
    store.put(_authorized(make_order(status=OrderStatus.CANCELLED)))

    notes = await bridge.send(_command(GatewayAction.CANCEL))

    assert gateway.called("reverse") == [("reverse", "42", "P1")]
    assert notes == ["Cancellation requested from Straumur. Reference: P1."]
    assert [n.content for n in store.orders[42].notes] == notes


@pytest.mark.asyncio
async def test_send_failed_cancel_says_so(bridge, gateway, store, make_order):
    gateway.reverse_result = False
    store.put(_authorized(make_order(status=OrderStatus.CANCELLED)))

    notes = await bridge.send(_command(GatewayAction.CANCEL))

    assert notes[0].startswith("Straumur cancellation request failed. Reference: P1.")
    assert store.orders[42].status is OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_send_capture(bridge, gateway, store, make_order):
    store.put(_authorized(make_order(status=OrderStatus.PROCESSING)))

    notes = await bridge.send(_command(GatewayAction.CAPTURE))

    assert gateway.called("capture") == [("capture", "P1", "42", 150000, "ISK")]
    assert notes == ["Capture of 1.500 ISK requested from Straumur. Reference: P1."]


@pytest.mark.asyncio
async def test_send_failed_capture(bridge, gateway, store, make_order):
    gateway.capture_result = None
    store.put(_authorized(make_order(status=OrderStatus.PROCESSING)))

    notes = await bridge.send(_command(GatewayAction.CAPTURE))

    assert notes == ["Straumur capture of 1.500 ISK failed. Reference: P1."]


@pytest.mark.asyncio
async def test_send_refund_cancels_subscriptions(bridge, gateway, store, make_order, uow_factory):
    subscriptions = uow_factory().subscription_repository
    await subscriptions.add(Subscription(id=None, order_id=42))
    await subscriptions.add(Subscription(id=None, order_id=99))
    store.put(_authorized(make_order(status=OrderStatus.REFUNDED)))

    notes = await bridge.send(_command(GatewayAction.REFUND))

    assert gateway.called("refund") == [("refund", "P1", "42", 150000, "ISK")]
    assert notes == [
        "Refund of 1.500 ISK requested from Straumur. Reference: P1.",
        "Subscription #1 cancelled after refund.",
    ]
    assert store.subscriptions[1].status is SubscriptionStatus.CANCELLED
    assert store.subscriptions[2].status is SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_send_failed_refund_leaves_subscriptions(bridge, gateway, store, make_order, uow_factory):
    gateway.refund_result = None
    await uow_factory().subscription_repository.add(Subscription(id=None, order_id=42))
    store.put(_authorized(make_order(status=OrderStatus.REFUNDED)))

    notes = await bridge.send(_command(GatewayAction.REFUND))

    assert notes == ["Straumur refund of 1.500 ISK failed. Reference: P1."]
    assert store.subscriptions[1].status is SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_send_never_raises_when_gateway_blows_up(bridge, gateway, store, make_order):
    async def broken(*args):
        raise RuntimeError("connection reset")

    gateway.reverse = broken
    store.put(_authorized(make_order(status=OrderStatus.CANCELLED)))

    notes = await bridge.send(_command(GatewayAction.CANCEL))

    assert notes[0].startswith("Straumur cancellation request failed.")


@pytest.mark.asyncio
async def test_send_retries_outcome_note_on_conflict(gateway, store, make_order, uow_factory, monkeypatch):
    store.put(_authorized(make_order(status=OrderStatus.CANCELLED)))
    bridge = OrderLifecycleBridge(gateway, uow_factory)
    attempts = []
    record = bridge._record

    async def flaky(*args):
        attempts.append(1)
        if len(attempts) == 1:
            raise ConcurrentOrderUpdateException(42)
        return await record(*args)

    monkeypatch.setattr(bridge, "_record", flaky)

    notes = await bridge.send(_command(GatewayAction.CANCEL))

    assert len(attempts) == 2
    assert len(gateway.called("reverse")) == 1
    assert [n.content for n in store.orders[42].notes] == notes


@pytest.mark.asyncio
async def test_send_gives_up_quietly_after_repeated_conflicts(gateway, store, make_order, uow_factory, monkeypatch):
    store.put(_authorized(make_order(status=OrderStatus.CANCELLED)))
    bridge = OrderLifecycleBridge(gateway, uow_factory, max_attempts=2)

    async def always_conflict(*args):
        raise ConcurrentOrderUpdateException(42)

    monkeypatch.setattr(bridge, "_record", always_conflict)

    assert await bridge.send(_command(GatewayAction.CANCEL)) == []
    assert len(gateway.called("reverse")) == 1
