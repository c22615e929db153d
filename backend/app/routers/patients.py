from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.patient import Patient
from app.models.user import Role, User
from app.schemas.patient import PatientCreate, PatientDetailOut, PatientOut, PatientUpdate
from app.services.audit import log_event, snapshot_model
from app.services.policy import Action, Entity, authorize, ensure_allowed, scoped
from app.services.users import build_user, email_taken

router = APIRouter(prefix="/patients", tags=["patients"])


def _get_patient(db: Session, ctx: RequestContext, patient_id: int, action: Action) -> Patient:
    authorize(ctx, Entity.patient, action)
    patient = db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    ensure_allowed(db, ctx, Entity.patient, action, patient)
    return patient


def _detail_for(ctx: RequestContext, patient: Patient) -> PatientDetailOut:
    detail = PatientDetailOut.model_validate(patient)
    if ctx.role == Role.patient:
        return detail
    # staff only see the part of the record held by their own clinic
    detail.appointments = [item for item in detail.appointments if item.clinic_id == ctx.clinic_id]
    detail.invoices = [item for item in detail.invoices if item.clinic_id == ctx.clinic_id]
    return detail


@router.get("", response_model=list[PatientOut])
def list_patients(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    search: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.patient, Action.list)
    stmt = scoped(
        select(Patient).outerjoin(User, Patient.user_id == User.id), ctx, Entity.patient, scope
    )
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Patient.first_name.ilike(like),
                Patient.last_name.ilike(like),
                Patient.phone.ilike(like),
                User.email.ilike(like),
            )
        )
    stmt = stmt.order_by(Patient.last_name, Patient.first_name).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.patient, Action.create)
    if payload.email and email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    patient = Patient(
        registered_clinic_id=ctx.clinic_id,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        date_of_birth=payload.date_of_birth,
        phone=payload.phone,
        address=payload.address,
    )
    if payload.email:
        # patients are not tied to a single clinic at the login level
        patient.user = build_user(
            email=payload.email,
            password=payload.temp_password,
            role=Role.patient,
            clinic_id=None,
            must_change_password=bool(payload.temp_password),
        )
    db.add(patient)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="patient.created",
        entity_type="patient",
        entity_id=patient.id,
        after_obj=patient,
    )
    db.commit()
    db.refresh(patient)
    return patient


@router.get("/me", response_model=PatientDetailOut)
def get_my_patient_record(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    if ctx.role != Role.patient:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    patient = db.scalar(select(Patient).where(Patient.user_id == ctx.user_id))
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return patient


@router.get("/{patient_id}", response_model=PatientDetailOut)
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _detail_for(ctx, _get_patient(db, ctx, patient_id, Action.read))


@router.patch("/{patient_id}", response_model=PatientOut)
def update_patient(
    patient_id: int,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    patient = _get_patient(db, ctx, patient_id, Action.update)
    before_data = snapshot_model(patient)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field in {"first_name", "last_name", "date_of_birth"} and value is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty"
            )
        setattr(patient, field, value.strip() if isinstance(value, str) else value)
    log_event(
        db,
        ctx=ctx,
        action="patient.updated",
        entity_type="patient",
        entity_id=patient.id,
        before_data=before_data,
        after_obj=patient,
    )
    db.commit()
    db.refresh(patient)
    return patient


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    patient = _get_patient(db, ctx, patient_id, Action.delete)
    foreign = [
        item
        for item in (*patient.appointments, *patient.invoices)
        if item.clinic_id != ctx.clinic_id
    ]
    if foreign:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Patient has records at another clinic",
        )
    log_event(
        db,
        ctx=ctx,
        action="patient.deleted",
        entity_type="patient",
        entity_id=patient.id,
        before_obj=patient,
    )
    # appointments, consultations, prescriptions and invoices go with the record
    if patient.user is not None:
        db.delete(patient.user)
    else:
        db.delete(patient)
    db.commit()
