import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.db.session import get_db
from app.models.invoice import Invoice
from app.services import payment_gateway
from app.services.invoices import find_invoice_by_payment_id, mark_invoice_paid

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger("medflow.webhooks")


async def _raw_body(request: Request) -> bytes:
    return await request.body()


def _settle(db: Session, invoice_id: int | None, payment_id: str, source: str) -> None:
    if invoice_id is None or db.get(Invoice, invoice_id) is None:
        logger.warning("Webhook %s references unknown invoice %s", source, invoice_id)
        return
    mark_invoice_paid(db, invoice_id=invoice_id, payment_id=payment_id, source=source)


@router.post("/stripe")
def stripe_webhook(
    payload: bytes = Depends(_raw_body),
    db: Session = Depends(get_db),
    stripe_signature: str | None = Header(default=None),
):
    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")
    try:
        event = payment_gateway.construct_webhook_event(
            payload, stripe_signature, settings.stripe_webhook_secret
        )
    except payment_gateway.WebhookSignatureError:
        logger.warning("Rejected Stripe webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    if event.type == "checkout.session.completed" and event.session is not None:
        session = event.session
        if session.payment_status == "paid":
            _settle(
                db,
                session.invoice_id,
                session.payment_intent_id or session.id,
                "webhook:checkout.session.completed",
            )
    elif event.type == "payment_intent.succeeded" and event.payment_intent_id:
        invoice_id = event.invoice_id
        if invoice_id is None:
            invoice = find_invoice_by_payment_id(db, event.payment_intent_id)
            invoice_id = invoice.id if invoice is not None else None
        _settle(db, invoice_id, event.payment_intent_id, "webhook:payment_intent.succeeded")
    else:
        logger.info("Ignoring Stripe event %s", event.type)
    db.commit()
    return {"received": True}
