from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.user import Role, User
from app.schemas.doctor import DoctorCreate, DoctorDetailOut, DoctorOut, DoctorUpdate
from app.services.audit import log_event, snapshot_model
from app.services.policy import Action, Entity, authorize, ensure_allowed, scoped
from app.services.users import build_user, email_taken, update_credentials

router = APIRouter(prefix="/doctors", tags=["doctors"])


def _get_doctor(db: Session, ctx: RequestContext, doctor_id: int, action: Action) -> Doctor:
    authorize(ctx, Entity.doctor, action)
    doctor = db.get(Doctor, doctor_id)
    if not doctor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    ensure_allowed(db, ctx, Entity.doctor, action, doctor)
    return doctor


def _doctor_snapshot(doctor: Doctor) -> dict:
    data = snapshot_model(doctor) or {}
    data["email"] = doctor.email
    return data


@router.get("", response_model=list[DoctorOut])
def list_doctors(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    search: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.doctor, Action.list)
    stmt = scoped(select(Doctor).join(User, Doctor.user_id == User.id), ctx, Entity.doctor, scope)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Doctor.specialization.ilike(like),
                Doctor.license_number.ilike(like),
                User.email.ilike(like),
            )
        )
    stmt = stmt.order_by(Doctor.id).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.post("", response_model=DoctorOut, status_code=status.HTTP_201_CREATED)
def create_doctor(
    payload: DoctorCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.doctor, Action.create)
    if email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    user = build_user(
        email=payload.email,
        password=payload.password,
        role=Role.doctor,
        clinic_id=ctx.clinic_id,
    )
    doctor = Doctor(
        user=user,
        specialization=payload.specialization.strip(),
        license_number=payload.license_number,
    )
    db.add(doctor)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="doctor.created",
        entity_type="doctor",
        entity_id=doctor.id,
        after_data=_doctor_snapshot(doctor),
    )
    db.commit()
    db.refresh(doctor)
    return doctor


@router.get("/me", response_model=DoctorDetailOut)
def get_my_doctor_profile(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    if ctx.role != Role.doctor:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    doctor = db.scalar(select(Doctor).where(Doctor.user_id == ctx.user_id))
    if not doctor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    return doctor


@router.get("/{doctor_id}", response_model=DoctorDetailOut)
def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _get_doctor(db, ctx, doctor_id, Action.read)


@router.patch("/{doctor_id}", response_model=DoctorOut)
def update_doctor(
    doctor_id: int,
    payload: DoctorUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    doctor = _get_doctor(db, ctx, doctor_id, Action.update)
    data = payload.model_dump(exclude_unset=True)
    if data.get("email") and email_taken(db, data["email"], exclude_user_id=doctor.user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    before_data = _doctor_snapshot(doctor)
    if data.get("specialization"):
        doctor.specialization = data["specialization"].strip()
    if "license_number" in data:
        doctor.license_number = data["license_number"]
    update_credentials(doctor.user, email=data.get("email"), password=data.get("password"))
    log_event(
        db,
        ctx=ctx,
        action="doctor.updated",
        entity_type="doctor",
        entity_id=doctor.id,
        before_data=before_data,
        after_data=_doctor_snapshot(doctor),
    )
    db.commit()
    db.refresh(doctor)
    return doctor


@router.delete("/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    doctor = _get_doctor(db, ctx, doctor_id, Action.delete)
    appointment_count = db.scalar(
        select(func.count(Appointment.id)).where(Appointment.doctor_id == doctor.id)
    )
    if appointment_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Doctor has appointments and cannot be deleted",
        )
    log_event(
        db,
        ctx=ctx,
        action="doctor.deleted",
        entity_type="doctor",
        entity_id=doctor.id,
        before_data=_doctor_snapshot(doctor),
    )
    # profile only; the login row stays but can no longer sign in
    doctor.user.is_active = False
    db.delete(doctor)
    db.commit()
