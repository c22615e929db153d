from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.appointment import Appointment
from app.models.consultation import Consultation
from app.schemas.consultation import ConsultationCreate, ConsultationOut, ConsultationUpdate
from app.services.audit import log_event, snapshot_model
from app.services.consultations import record_consultation
from app.services.policy import Action, Entity, authorize, ensure_allowed, in_scope, scoped

router = APIRouter(prefix="/consultations", tags=["consultations"])


@router.get("", response_model=list[ConsultationOut])
def list_consultations(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    appointment_id: int | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.consultation, Action.list)
    stmt = scoped(select(Consultation), ctx, Entity.consultation, scope)
    if appointment_id is not None:
        stmt = stmt.where(Consultation.appointment_id == appointment_id)
    stmt = stmt.order_by(Consultation.created_at.desc(), Consultation.id.desc())
    return list(db.scalars(stmt.limit(limit).offset(offset)))


@router.post("", response_model=ConsultationOut, status_code=status.HTTP_201_CREATED)
def create_consultation(
    payload: ConsultationCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    scope = authorize(ctx, Entity.consultation, Action.create)
    appointment = db.get(Appointment, payload.appointment_id)
    if not appointment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    if not in_scope(db, ctx, Entity.appointment, scope, appointment):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return record_consultation(
        db,
        ctx=ctx,
        appointment=appointment,
        diagnosis=payload.diagnosis,
        treatment=payload.treatment,
    )


@router.get("/{consultation_id}", response_model=ConsultationOut)
def get_consultation(
    consultation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.consultation, Action.read)
    consultation = db.get(Consultation, consultation_id)
    if not consultation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultation not found")
    ensure_allowed(db, ctx, Entity.consultation, Action.read, consultation)
    return consultation


@router.patch("/{consultation_id}", response_model=ConsultationOut)
def update_consultation(
    consultation_id: int,
    payload: ConsultationUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.consultation, Action.update)
    consultation = db.get(Consultation, consultation_id)
    if not consultation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultation not found")
    ensure_allowed(db, ctx, Entity.consultation, Action.update, consultation)
    before_data = snapshot_model(consultation)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty"
            )
        setattr(consultation, field, value.strip())
    log_event(
        db,
        ctx=ctx,
        action="consultation.updated",
        entity_type="consultation",
        entity_id=consultation.id,
        clinic_id=consultation.appointment.clinic_id,
        before_data=before_data,
        after_obj=consultation,
    )
    db.commit()
    db.refresh(consultation)
    return consultation
