from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.consultation import Consultation
from app.models.prescription import Prescription
from app.schemas.prescription import PrescriptionCreate, PrescriptionOut
from app.services.audit import log_event
from app.services.policy import Action, Entity, authorize, ensure_allowed, in_scope, scoped
from app.services.prescription_pdf import build_prescription_pdf

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])


def _get_prescription(
    db: Session, ctx: RequestContext, prescription_id: int, action: Action
) -> Prescription:
    authorize(ctx, Entity.prescription, action)
    prescription = db.get(Prescription, prescription_id)
    if not prescription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prescription not found")
    ensure_allowed(db, ctx, Entity.prescription, action, prescription)
    return prescription


@router.get("", response_model=list[PrescriptionOut])
def list_prescriptions(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    consultation_id: int | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.prescription, Action.list)
    stmt = scoped(select(Prescription), ctx, Entity.prescription, scope)
    if consultation_id is not None:
        stmt = stmt.where(Prescription.consultation_id == consultation_id)
    stmt = stmt.order_by(Prescription.created_at.desc(), Prescription.id.desc())
    return list(db.scalars(stmt.limit(limit).offset(offset)))


@router.post("", response_model=PrescriptionOut, status_code=status.HTTP_201_CREATED)
def create_prescription(
    payload: PrescriptionCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    scope = authorize(ctx, Entity.prescription, Action.create)
    consultation = db.get(Consultation, payload.consultation_id)
    if not consultation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultation not found")
    if not in_scope(db, ctx, Entity.consultation, scope, consultation):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    prescription = Prescription(
        consultation_id=consultation.id,
        medications=payload.medications.strip(),
        instructions=payload.instructions,
    )
    db.add(prescription)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="prescription.created",
        entity_type="prescription",
        entity_id=prescription.id,
        clinic_id=consultation.appointment.clinic_id,
        after_obj=prescription,
    )
    db.commit()
    db.refresh(prescription)
    return prescription


@router.get("/{prescription_id}", response_model=PrescriptionOut)
def get_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _get_prescription(db, ctx, prescription_id, Action.read)


@router.post("/{prescription_id}/pdf")
def export_prescription_pdf(
    prescription_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    prescription = _get_prescription(db, ctx, prescription_id, Action.export)
    pdf_bytes = build_prescription_pdf(prescription)
    if not prescription.pdf_url:
        prescription.pdf_url = f"/prescriptions/{prescription.id}/pdf"
    log_event(
        db,
        ctx=ctx,
        action="prescription.exported",
        entity_type="prescription",
        entity_id=prescription.id,
        clinic_id=prescription.consultation.appointment.clinic_id,
        after_data={"pdf_url": prescription.pdf_url},
    )
    db.commit()
    filename = f"prescription-{prescription_id}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
