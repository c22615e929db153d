from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.appointment import Appointment, AppointmentStatus
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.models.user import Role
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentDetailOut,
    AppointmentOut,
    AppointmentUpdate,
)
from app.services.appointments import ensure_editable, ensure_transition
from app.services.audit import log_event, snapshot_model
from app.services.policy import Action, Entity, authorize, ensure_allowed, scoped

router = APIRouter(prefix="/appointments", tags=["appointments"])

PATIENT_EDITABLE_FIELDS = {"scheduled_at", "notes"}


def _get_appointment(
    db: Session, ctx: RequestContext, appointment_id: int, action: Action
) -> Appointment:
    authorize(ctx, Entity.appointment, action)
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    ensure_allowed(db, ctx, Entity.appointment, action, appointment)
    return appointment


def _current_doctor_id(db: Session, ctx: RequestContext) -> int:
    doctor_id = db.scalar(select(Doctor.id).where(Doctor.user_id == ctx.user_id))
    if doctor_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="doctor_id=current requires a doctor"
        )
    return doctor_id


@router.get("", response_model=list[AppointmentOut])
def list_appointments(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    patient_id: int | None = Query(default=None),
    doctor_id: str | None = Query(default=None),
    status_filter: AppointmentStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.appointment, Action.list)
    stmt = scoped(select(Appointment), ctx, Entity.appointment, scope)
    if patient_id is not None:
        stmt = stmt.where(Appointment.patient_id == patient_id)
    if doctor_id:
        if doctor_id == "current":
            stmt = stmt.where(Appointment.doctor_id == _current_doctor_id(db, ctx))
        elif doctor_id.isdigit():
            stmt = stmt.where(Appointment.doctor_id == int(doctor_id))
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="doctor_id must be an integer or 'current'",
            )
    if status_filter:
        stmt = stmt.where(Appointment.status == status_filter)
    stmt = stmt.order_by(Appointment.scheduled_at.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.appointment, Action.create)
    patient = db.get(Patient, payload.patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    doctor = db.get(Doctor, payload.doctor_id)
    if not doctor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")

    if ctx.role == Role.patient:
        if patient.user_id != ctx.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        clinic_id = doctor.clinic_id
    else:
        if doctor.clinic_id != ctx.clinic_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Doctor does not belong to your clinic",
            )
        ensure_allowed(db, ctx, Entity.patient, Action.read, patient)
        clinic_id = ctx.clinic_id
    if clinic_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Doctor is not attached to a clinic"
        )

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        clinic_id=clinic_id,
        scheduled_at=payload.scheduled_at,
        status=AppointmentStatus.scheduled,
        notes=payload.notes,
    )
    db.add(appointment)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="appointment.created",
        entity_type="appointment",
        entity_id=appointment.id,
        clinic_id=clinic_id,
        after_obj=appointment,
    )
    db.commit()
    db.refresh(appointment)
    return appointment


@router.get("/{appointment_id}", response_model=AppointmentDetailOut)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _get_appointment(db, ctx, appointment_id, Action.read)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    appointment = _get_appointment(db, ctx, appointment_id, Action.update)
    data = payload.model_dump(exclude_unset=True)
    if ctx.role == Role.patient and set(data) - PATIENT_EDITABLE_FIELDS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Patients may only change scheduled_at and notes",
        )
    ensure_editable(appointment)
    if "scheduled_at" in data and data["scheduled_at"] is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="scheduled_at cannot be empty"
        )
    new_status = data.pop("status", None)
    if new_status is not None:
        ensure_transition(appointment, new_status)

    before_data = snapshot_model(appointment)
    for field, value in data.items():
        setattr(appointment, field, value)
    if new_status is not None and new_status != appointment.status:
        log_event(
            db,
            ctx=ctx,
            action=f"appointment.status: {appointment.status.value} -> {new_status.value}",
            entity_type="appointment",
            entity_id=appointment.id,
            clinic_id=appointment.clinic_id,
            after_data={"status": new_status.value},
        )
        appointment.status = new_status
    log_event(
        db,
        ctx=ctx,
        action="appointment.updated",
        entity_type="appointment",
        entity_id=appointment.id,
        clinic_id=appointment.clinic_id,
        before_data=before_data,
        after_obj=appointment,
    )
    db.commit()
    db.refresh(appointment)
    return appointment


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    appointment = _get_appointment(db, ctx, appointment_id, Action.delete)
    if appointment.consultation is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Appointment has a consultation and cannot be deleted",
        )
    log_event(
        db,
        ctx=ctx,
        action="appointment.deleted",
        entity_type="appointment",
        entity_id=appointment.id,
        clinic_id=appointment.clinic_id,
        before_obj=appointment,
    )
    db.delete(appointment)
    db.commit()
