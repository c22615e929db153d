import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.invoice import Invoice, InvoiceStatus
from app.models.patient import Patient
from app.schemas.invoice import (
    CheckoutOut,
    InvoiceCreate,
    InvoiceOut,
    InvoiceUpdate,
    VerifyPaymentOut,
    VerifyPaymentRequest,
)
from app.services import payment_gateway
from app.services.audit import log_event, snapshot_model
from app.services.invoices import mark_invoice_paid
from app.services.policy import Action, Entity, authorize, ensure_allowed, scoped

router = APIRouter(prefix="/invoices", tags=["invoices"])
logger = logging.getLogger("medflow.payments")


def _get_invoice(db: Session, ctx: RequestContext, invoice_id: int, action: Action) -> Invoice:
    authorize(ctx, Entity.invoice, action)
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    ensure_allowed(db, ctx, Entity.invoice, action, invoice)
    return invoice


@router.get("", response_model=list[InvoiceOut])
def list_invoices(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    patient_id: int | None = Query(default=None),
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.invoice, Action.list)
    stmt = scoped(select(Invoice), ctx, Entity.invoice, scope)
    if patient_id is not None:
        stmt = stmt.where(Invoice.patient_id == patient_id)
    if status_filter:
        stmt = stmt.where(Invoice.status == status_filter)
    stmt = stmt.order_by(Invoice.created_at.desc(), Invoice.id.desc())
    return list(db.scalars(stmt.limit(limit).offset(offset)))


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.invoice, Action.create)
    patient = db.get(Patient, payload.patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    ensure_allowed(db, ctx, Entity.patient, Action.read, patient)
    invoice = Invoice(
        patient_id=patient.id,
        clinic_id=ctx.clinic_id,
        amount=payload.amount,
        status=InvoiceStatus.pending,
    )
    db.add(invoice)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="invoice.created",
        entity_type="invoice",
        entity_id=invoice.id,
        after_obj=invoice,
    )
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/verify-payment", response_model=VerifyPaymentOut)
def verify_payment(
    payload: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    try:
        session = payment_gateway.retrieve_checkout_session(payload.session_id)
    except payment_gateway.PaymentGatewayError:
        logger.exception("Checkout session lookup failed for %s", payload.session_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider unavailable"
        )
    if session.invoice_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Checkout session has no invoice"
        )
    invoice = _get_invoice(db, ctx, session.invoice_id, Action.pay)

    if session.payment_status != "paid":
        return VerifyPaymentOut(
            success=False,
            message="Payment not completed",
            invoice_id=invoice.id,
            payment_status=session.payment_status,
            invoice_status=invoice.status,
        )

    changed = mark_invoice_paid(
        db,
        invoice_id=invoice.id,
        payment_id=session.payment_intent_id or session.id,
        ctx=ctx,
        source="verify",
    )
    db.commit()
    db.refresh(invoice)
    return VerifyPaymentOut(
        success=invoice.status == InvoiceStatus.paid,
        message="Payment verified" if changed else "Invoice already settled",
        invoice_id=invoice.id,
        payment_status=session.payment_status,
        invoice_status=invoice.status,
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _get_invoice(db, ctx, invoice_id, Action.read)


@router.patch("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    invoice = _get_invoice(db, ctx, invoice_id, Action.update)
    if payload.status == invoice.status:
        return invoice
    if invoice.status != InvoiceStatus.pending or payload.status != InvoiceStatus.cancelled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending invoices can be cancelled; payment settles invoices",
        )
    before_data = snapshot_model(invoice)
    invoice.status = InvoiceStatus.cancelled
    log_event(
        db,
        ctx=ctx,
        action="invoice.cancelled",
        entity_type="invoice",
        entity_id=invoice.id,
        before_data=before_data,
        after_obj=invoice,
    )
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/{invoice_id}/pay", response_model=CheckoutOut)
def pay_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    invoice = _get_invoice(db, ctx, invoice_id, Action.pay)
    if invoice.status != InvoiceStatus.pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invoice is {invoice.status.value} and cannot be paid",
        )
    base_url = settings.app_base_url.rstrip("/")
    try:
        session = payment_gateway.create_checkout_session(
            invoice_id=invoice.id,
            amount=invoice.amount,
            description=f"Invoice #{invoice.id}",
            success_url=(
                f"{base_url}/patient/invoices?payment=success&session_id={{CHECKOUT_SESSION_ID}}"
            ),
            cancel_url=f"{base_url}/patient/invoices?payment=cancelled",
            customer_email=invoice.patient.email,
        )
    except payment_gateway.PaymentGatewayError:
        logger.exception("Checkout session creation failed for invoice %s", invoice.id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider unavailable"
        )
    log_event(
        db,
        ctx=ctx,
        action="invoice.checkout_started",
        entity_type="invoice",
        entity_id=invoice.id,
        clinic_id=invoice.clinic_id,
        after_data={"session_id": session.id},
    )
    db.commit()
    return CheckoutOut(url=session.url or "", session_id=session.id)
