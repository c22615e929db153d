from decimal import Decimal

import pytest
import stripe

from app.services import payment_gateway


def test_to_minor_units_rounds_half_up():
    assert payment_gateway.to_minor_units(Decimal("49.99")) == 4999
    assert payment_gateway.to_minor_units(Decimal("10.005")) == 1001


def test_session_info_reads_metadata_and_expanded_intent():
    session = {
        "id": "cs_1",
        "url": "https://checkout.example.com/cs_1",
        "payment_status": "paid",
        "payment_intent": {"id": "pi_9"},
        "metadata": {"invoice_id": "17"},
        "client_reference_id": "99",
    }
    info = payment_gateway.session_info(session)
    assert info.invoice_id == 17
    assert info.payment_intent_id == "pi_9"


def test_session_info_falls_back_to_client_reference():
    info = payment_gateway.session_info({"id": "cs_2", "metadata": {}, "client_reference_id": "8"})
    assert info.invoice_id == 8


def test_create_checkout_session_builds_stripe_params(monkeypatch):
    captured = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_3", "url": "https://checkout.example.com/cs_3"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    info = payment_gateway.create_checkout_session(
        invoice_id=12,
        amount=Decimal("80.00"),
        description="Invoice #12",
        success_url="https://app.example.com/ok",
        cancel_url="https://app.example.com/cancel",
    )
    assert info.id == "cs_3"
    line = captured["line_items"][0]
    assert line["price_data"]["unit_amount"] == 8000
    assert captured["metadata"] == {"invoice_id": "12"}
    assert captured["client_reference_id"] == "12"
    assert "customer_email" not in captured


def test_stripe_errors_become_gateway_errors(monkeypatch):
    def failing(*args, **kwargs):
        raise stripe.StripeError("boom")

    monkeypatch.setattr(stripe.checkout.Session, "retrieve", failing)
    with pytest.raises(payment_gateway.PaymentGatewayError, match="boom"):
        payment_gateway.retrieve_checkout_session("cs_missing")


def test_construct_webhook_event_rejects_bad_signature():
    with pytest.raises(payment_gateway.WebhookSignatureError):
        payment_gateway.construct_webhook_event(b"{}", "t=1,v1=deadbeef", "whsec_test")
