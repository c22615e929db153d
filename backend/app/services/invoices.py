from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.deps import RequestContext
from app.models.base import utcnow
from app.models.invoice import Invoice, InvoiceStatus
from app.services.audit import log_event

logger = logging.getLogger("medflow.payments")


def mark_invoice_paid(
    db: Session,
    *,
    invoice_id: int,
    payment_id: str,
    ctx: RequestContext | None = None,
    source: str = "checkout",
) -> bool:
    """Move a PENDING invoice to PAID.

    Returns True only for the call that performed the transition; repeats and
    invoices in any other status are left untouched. The caller commits.
    """
    stmt = (
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.status == InvoiceStatus.pending)
        .values(status=InvoiceStatus.paid, paid_at=utcnow(), stripe_payment_id=payment_id)
        .execution_options(synchronize_session=False)
    )
    try:
        with db.begin_nested():
            result = db.execute(stmt)
    except IntegrityError:
        logger.warning(
            "Payment %s already settled another invoice; invoice %s left unpaid",
            payment_id,
            invoice_id,
        )
        return False

    if result.rowcount != 1:
        logger.info("Invoice %s was not pending; payment %s ignored", invoice_id, payment_id)
        return False

    invoice = db.get(Invoice, invoice_id)
    if invoice is not None:
        db.refresh(invoice)
    log_event(
        db,
        ctx=ctx,
        action="invoice.paid",
        entity_type="invoice",
        entity_id=invoice_id,
        clinic_id=invoice.clinic_id if invoice is not None else None,
        after_data={"status": InvoiceStatus.paid.value, "payment_id": payment_id, "source": source},
    )
    logger.info("Invoice %s marked paid via %s (%s)", invoice_id, source, payment_id)
    return True


def find_invoice_by_payment_id(db: Session, payment_id: str) -> Invoice | None:
    return db.scalar(select(Invoice).where(Invoice.stripe_payment_id == payment_id))
