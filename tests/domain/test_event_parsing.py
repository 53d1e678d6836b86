from domain.payment.event import EventType, PaymentEvent, derive_event_key, wire_text


def _body(**overrides):
    data = {
        "checkoutReference": "CR1",
        "payfacReference": "P1",
        "merchantReference": "42",
        "amount": 150000,
        "currency": "isk",
        "reason": None,
        "success": True,
        "hmacSignature": "sig",
        "additionalData": {
            "eventType": "Authorization",
            "authCode": "123456",
            "cardSummary": "411111******1111",
            "threeDAuthenticated": "true",
        },
    }
    data.update(overrides)
    return data


def test_wire_text():
    assert wire_text(None) == ""
    assert wire_text("abc") == "abc"
    assert wire_text(True) == "true"
    assert wire_text(False) == "false"
    assert wire_text(150000) == "150000"


def test_from_payload_reads_additional_data():
    event = PaymentEvent.from_payload(_body())
    assert event.event_type is EventType.AUTHORIZATION
    assert event.event_name == "authorization"
    assert event.order_id == 42
    assert event.amount == 150000
    assert event.currency == "ISK"
    assert event.success is True
    assert event.auth_code == "123456"
    assert event.card_summary == "411111******1111"
    assert event.three_d_authenticated is True
    assert event.hmac_signature == "sig"


def test_detail_fields_fall_back_to_top_level():
    body = _body(additionalData=None, eventType="capture", originalPayfacReference="P0", cardNumber="1111")
    event = PaymentEvent.from_payload(body)
    assert event.event_type is EventType.CAPTURE
    assert event.original_payfac_reference == "P0"
    assert event.card_summary == "1111"


def test_success_is_false_only_when_explicit():
    assert PaymentEvent.from_payload(_body(success=False)).success is False
    assert PaymentEvent.from_payload(_body(success="FALSE")).success is False
    assert PaymentEvent.from_payload(_body(success="true")).success is True
    body = _body()
    del body["success"]
    assert PaymentEvent.from_payload(body).success is True


def test_amount_parsing_is_lenient():
    assert PaymentEvent.from_payload(_body(amount="2500")).amount == 2500
    assert PaymentEvent.from_payload(_body(amount="abc")).amount == 0
    assert PaymentEvent.from_payload(_body(amount=None)).amount == 0
    assert PaymentEvent.from_payload(_body(amount=-10)).amount == 0


def test_non_finite_amounts_parse_as_zero():
    assert PaymentEvent.from_payload(_body(amount=float("inf"))).amount == 0
    assert PaymentEvent.from_payload(_body(amount=float("nan"))).amount == 0
    assert PaymentEvent.from_payload(_body(amount="1e400")).amount == 0
    assert PaymentEvent.from_payload(_body(amount="Infinity")).amount == 0


def test_order_id_requires_positive_integer_reference():
    assert PaymentEvent.from_payload(_body(merchantReference="abc")).order_id is None
    assert PaymentEvent.from_payload(_body(merchantReference="0")).order_id is None
    assert PaymentEvent.from_payload(_body(merchantReference="")).order_id is None
    assert PaymentEvent.from_payload(_body(merchantReference=7)).order_id == 7


def test_unrecognized_event_type_keeps_raw_name_in_key():
    event = PaymentEvent.from_payload(_body(additionalData={"eventType": "Chargeback"}))
    assert event.event_type is EventType.UNKNOWN
    assert event.key == "P1:chargeback::150000"


def test_missing_event_type_is_unknown():
    event = PaymentEvent.from_payload(_body(additionalData={}))
    assert event.event_type is EventType.UNKNOWN
    assert event.key == "P1:unknown::150000"


def test_event_key_keeps_empty_segments():
    event = PaymentEvent.from_payload(_body())
    assert derive_event_key(event) == "P1:authorization::150000"

    refund = PaymentEvent.from_payload(
        _body(payfacReference="R1", amount=5000, additionalData={"eventType": "Refund", "originalPayfacReference": "P1"})
    )
    assert refund.key == "R1:refund:P1:5000"


def test_partial_captures_have_distinct_keys():
    first = PaymentEvent.from_payload(_body(amount=1000, additionalData={"eventType": "Capture"}))
    second = PaymentEvent.from_payload(_body(amount=2000, additionalData={"eventType": "Capture"}))
    assert first.key != second.key
