"""Thin wrapper over the Stripe SDK.

Routers only see the dataclasses below, so tests can replace these functions
without touching Stripe objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe

from app.core.settings import settings


class PaymentGatewayError(Exception):
    pass


class WebhookSignatureError(Exception):
    pass


@dataclass(frozen=True)
class CheckoutSessionInfo:
    id: str
    url: str | None = None
    payment_status: str | None = None
    payment_intent_id: str | None = None
    invoice_id: int | None = None


@dataclass(frozen=True)
class WebhookEvent:
    type: str
    session: CheckoutSessionInfo | None = None
    payment_intent_id: str | None = None
    invoice_id: int | None = None


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _parse_invoice_id(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def session_info(session: Any) -> CheckoutSessionInfo:
    payment_intent = _field(session, "payment_intent")
    if payment_intent is not None and not isinstance(payment_intent, str):
        payment_intent = _field(payment_intent, "id")
    invoice_id = _parse_invoice_id(_field(_field(session, "metadata"), "invoice_id"))
    if invoice_id is None:
        invoice_id = _parse_invoice_id(_field(session, "client_reference_id"))
    return CheckoutSessionInfo(
        id=_field(session, "id"),
        url=_field(session, "url"),
        payment_status=_field(session, "payment_status"),
        payment_intent_id=payment_intent,
        invoice_id=invoice_id,
    )


def _api_key() -> str:
    if not settings.stripe_secret_key:
        raise PaymentGatewayError("Stripe is not configured")
    return settings.stripe_secret_key


def create_checkout_session(
    *,
    invoice_id: int,
    amount: Decimal,
    description: str,
    success_url: str,
    cancel_url: str,
    customer_email: str | None = None,
) -> CheckoutSessionInfo:
    params: dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": settings.stripe_currency,
                    "product_data": {"name": description},
                    "unit_amount": to_minor_units(amount),
                },
                "quantity": 1,
            }
        ],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": str(invoice_id),
        "metadata": {"invoice_id": str(invoice_id)},
        "payment_intent_data": {"metadata": {"invoice_id": str(invoice_id)}},
    }
    if customer_email:
        params["customer_email"] = customer_email
    try:
        session = stripe.checkout.Session.create(api_key=_api_key(), **params)
    except stripe.StripeError as exc:
        raise PaymentGatewayError(str(exc)) from exc
    return session_info(session)


def retrieve_checkout_session(session_id: str) -> CheckoutSessionInfo:
    try:
        session = stripe.checkout.Session.retrieve(session_id, api_key=_api_key())
    except stripe.StripeError as exc:
        raise PaymentGatewayError(str(exc)) from exc
    return session_info(session)


def construct_webhook_event(payload: bytes, signature: str, secret: str) -> WebhookEvent:
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        raise WebhookSignatureError(str(exc)) from exc

    event_type = _field(event, "type") or ""
    data_object = _field(_field(event, "data"), "object")
    if event_type.startswith("checkout.session."):
        return WebhookEvent(type=event_type, session=session_info(data_object))
    if event_type.startswith("payment_intent."):
        return WebhookEvent(
            type=event_type,
            payment_intent_id=_field(data_object, "id"),
            invoice_id=_parse_invoice_id(_field(_field(data_object, "metadata"), "invoice_id")),
        )
    return WebhookEvent(type=event_type)
