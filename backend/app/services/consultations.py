"""Recording a consultation and the invoice that follows it.

The consultation and the appointment status change are committed together.
The automatic invoice runs inside a savepoint: when it fails the savepoint is
rolled back, the failure is logged, and the consultation still stands.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.deps import RequestContext
from app.models.appointment import Appointment, AppointmentStatus
from app.models.base import utcnow
from app.models.consultation import Consultation
from app.models.invoice import Invoice, InvoiceStatus
from app.models.service import Service
from app.services.audit import log_event

logger = logging.getLogger("medflow.consultations")


def resolve_invoice_amount(db: Session, clinic_id: int) -> Decimal:
    """Price of the clinic's most recently created active service, else the default fee."""
    price = db.scalar(
        select(Service.price)
        .where(Service.clinic_id == clinic_id, Service.is_active.is_(True))
        .order_by(Service.created_at.desc(), Service.id.desc())
        .limit(1)
    )
    if price is None:
        return settings.default_consultation_fee
    return Decimal(price)


def has_recent_pending_invoice(
    db: Session, patient_id: int, *, now: datetime | None = None
) -> bool:
    window = settings.auto_invoice_window_minutes
    if window <= 0:
        return False
    cutoff = (now or utcnow()) - timedelta(minutes=window)
    count = db.scalar(
        select(func.count(Invoice.id)).where(
            Invoice.patient_id == patient_id,
            Invoice.status == InvoiceStatus.pending,
            Invoice.created_at >= cutoff,
        )
    )
    return bool(count)


def _create_invoice(db: Session, ctx: RequestContext, consultation: Consultation) -> Invoice | None:
    appointment = consultation.appointment
    if has_recent_pending_invoice(db, appointment.patient_id):
        logger.info(
            "Automatic invoice skipped for consultation %s: patient %s already has a pending "
            "invoice from the last %s minutes",
            consultation.id,
            appointment.patient_id,
            settings.auto_invoice_window_minutes,
        )
        return None
    invoice = Invoice(
        patient_id=appointment.patient_id,
        clinic_id=appointment.clinic_id,
        consultation_id=consultation.id,
        amount=resolve_invoice_amount(db, appointment.clinic_id),
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
        clinic_id=appointment.clinic_id,
        after_obj=invoice,
    )
    logger.info(
        "Automatic invoice %s created for consultation %s (amount %s)",
        invoice.id,
        consultation.id,
        invoice.amount,
    )
    return invoice


def create_consultation_invoice(
    db: Session, ctx: RequestContext, consultation: Consultation
) -> Invoice | None:
    try:
        with db.begin_nested():
            return _create_invoice(db, ctx, consultation)
    except Exception:
        logger.exception(
            "Automatic invoice failed for consultation %s; consultation kept", consultation.id
        )
        return None


def record_consultation(
    db: Session,
    *,
    ctx: RequestContext,
    appointment: Appointment,
    diagnosis: str,
    treatment: str,
) -> Consultation:
    if appointment.consultation is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Consultation already exists for this appointment",
        )
    if appointment.status == AppointmentStatus.cancelled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot record a consultation for a cancelled appointment",
        )

    before_status = appointment.status.value
    consultation = Consultation(
        appointment=appointment,
        diagnosis=diagnosis.strip(),
        treatment=treatment.strip(),
    )
    appointment.status = AppointmentStatus.completed
    db.add(consultation)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Consultation already exists for this appointment",
        ) from exc

    log_event(
        db,
        ctx=ctx,
        action="consultation.created",
        entity_type="consultation",
        entity_id=consultation.id,
        clinic_id=appointment.clinic_id,
        after_obj=consultation,
    )
    log_event(
        db,
        ctx=ctx,
        action=f"appointment.status: {before_status} -> {AppointmentStatus.completed.value}",
        entity_type="appointment",
        entity_id=appointment.id,
        clinic_id=appointment.clinic_id,
        after_data={"status": AppointmentStatus.completed.value},
    )
    create_consultation_invoice(db, ctx, consultation)
    db.commit()
    db.refresh(consultation)
    return consultation
