import json

import pytest

from application.services.webhook_reconciler import WebhookOutcome
from application.services.webhook_service import PaymentWebhookService
from domain.common.exceptions import ConcurrentOrderUpdateException
from domain.order.entity import OrderStatus
from domain.payment.event import PaymentEvent
from domain.payment.state import load_payment_state


def _authorization(**overrides):
    data = {
        "checkoutReference": "CR1",
        "payfacReference": "P1",
        "merchantReference": "42",
        "amount": 150000,
        "currency": "ISK",
        "reason": None,
        "success": True,
        "additionalData": {
            "eventType": "Authorization",
            "authCode": "123456",
            "cardSummary": "411111******1111",
            "threeDAuthenticated": "true",
        },
    }
    data.update(overrides)
    return data


def _body(data) -> bytes:
    return json.dumps(data).encode("utf-8")


@pytest.mark.asyncio
async def test_signed_authorization_updates_order_once(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    service = PaymentWebhookService(uow_factory, gateway_config)
    body = _body(sign(_authorization()))

    assert await service.handle(body) is WebhookOutcome.APPLIED
    assert await service.handle(body) is WebhookOutcome.DUPLICATE

    order = store.orders[42]
    assert order.status is OrderStatus.PROCESSING
    assert len(order.notes) == 1
    assert order.notes[0].content.startswith("1.500 ISK was successfully authorized to card 411111******1111")
    assert list(load_payment_state(order).processed_event_keys) == ["P1:authorization::150000"]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b"", b"\"text\""])
async def test_malformed_body(uow_factory, store, gateway_config, body):
    service = PaymentWebhookService(uow_factory, gateway_config)
    assert await service.handle(body) is WebhookOutcome.MALFORMED
    assert store.commits == 0


@pytest.mark.asyncio
async def test_missing_or_bad_signature_is_rejected(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    service = PaymentWebhookService(uow_factory, gateway_config)

    assert await service.handle(_body(_authorization())) is WebhookOutcome.REJECTED

    tampered = sign(_authorization())
    tampered["amount"] = 1
    assert await service.handle(_body(tampered)) is WebhookOutcome.REJECTED

    assert store.orders[42].status is OrderStatus.PENDING
    assert store.orders[42].notes == []


@pytest.mark.asyncio
async def test_rejects_everything_without_configured_secret(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    config = gateway_config.model_copy(update={"hmac_key": ""})
    service = PaymentWebhookService(uow_factory, config)
    assert await service.handle(_body(sign(_authorization()))) is WebhookOutcome.REJECTED


@pytest.mark.asyncio
async def test_non_numeric_merchant_reference(uow_factory, gateway_config, sign):
    service = PaymentWebhookService(uow_factory, gateway_config)
    body = _body(sign(_authorization(merchantReference="order-42")))
    assert await service.handle(body) is WebhookOutcome.MALFORMED


@pytest.mark.asyncio
async def test_unknown_order(uow_factory, store, gateway_config, sign):
    service = PaymentWebhookService(uow_factory, gateway_config)
    assert await service.handle(_body(sign(_authorization(merchantReference="999")))) is WebhookOutcome.UNKNOWN_ORDER
    assert store.orders == {}


@pytest.mark.asyncio
async def test_failure_notification_is_saved(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    service = PaymentWebhookService(uow_factory, gateway_config)
    body = _body(sign(_authorization(success=False, reason="Expired Card")))

    assert await service.handle(body) is WebhookOutcome.FAILURE_RECORDED
    order = store.orders[42]
    assert order.status is OrderStatus.PENDING
    assert order.notes[-1].content == (
        "Straumur Authorization failed: The card used for the payment has expired. Reference: P1"
    )


@pytest.mark.asyncio
async def test_conflicting_writes_are_retried(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    attempts = []

    def flaky_factory():
        uow = uow_factory()
        save = uow.order_repository.save

        async def save_once_conflicting(order):
            attempts.append(order.id)
            if len(attempts) == 1:
                raise ConcurrentOrderUpdateException(order.id)
            return await save(order)

        uow.order_repository.save = save_once_conflicting
        return uow

    service = PaymentWebhookService(flaky_factory, gateway_config)
    assert await service.handle(_body(sign(_authorization()))) is WebhookOutcome.APPLIED
    assert len(attempts) == 2
    assert store.rollbacks == 1
    assert store.orders[42].status is OrderStatus.PROCESSING
    assert len(store.orders[42].notes) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    attempts = []

    def conflicting_factory():
        uow = uow_factory()

        async def always_conflict(order):
            attempts.append(order.id)
            raise ConcurrentOrderUpdateException(order.id)

        uow.order_repository.save = always_conflict
        return uow

    service = PaymentWebhookService(conflicting_factory, gateway_config, max_attempts=3)
    assert await service.handle(_body(sign(_authorization()))) is WebhookOutcome.CONFLICT
    assert len(attempts) == 3
    assert store.orders[42].status is OrderStatus.PENDING


@pytest.mark.asyncio
async def test_unexpected_errors_never_escape(store, gateway_config, make_order, sign):
    store.put(make_order())

    def broken_factory():
        raise RuntimeError("database unavailable")

    service = PaymentWebhookService(broken_factory, gateway_config)
    assert await service.handle(_body(sign(_authorization()))) is WebhookOutcome.ERROR


@pytest.mark.asyncio
async def test_infinite_amount_does_not_escape(uow_factory, store, gateway_config, make_order, sign):
    store.put(make_order())
    service = PaymentWebhookService(uow_factory, gateway_config)
    body = _body(sign(_authorization(amount=float("inf"))))
    assert b"Infinity" in body

    assert await service.handle(body) is WebhookOutcome.APPLIED
    assert list(load_payment_state(store.orders[42]).processed_event_keys) == ["P1:authorization::0"]


@pytest.mark.asyncio
async def test_unparseable_event_is_malformed(uow_factory, store, gateway_config, make_order, sign, monkeypatch):
    store.put(make_order())
    service = PaymentWebhookService(uow_factory, gateway_config)

    def explode(data):
        raise OverflowError("cannot convert float infinity to integer")

    monkeypatch.setattr(PaymentEvent, "from_payload", staticmethod(explode))

    assert await service.handle(_body(sign(_authorization()))) is WebhookOutcome.MALFORMED
    assert store.commits == 0
