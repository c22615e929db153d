from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.appointment import Appointment
from app.models.clinic import Clinic
from app.models.service import Service
from app.models.user import User
from app.schemas.clinic import ClinicCounts, ClinicOut, ClinicUpdate
from app.schemas.summaries import ServiceSummary, UserSummary
from app.services.audit import log_event, snapshot_model
from app.services.policy import Action, Entity, authorize, ensure_allowed

router = APIRouter(prefix="/clinic", tags=["clinic"])


def _count(db: Session, model, clinic_id: int) -> int:
    return int(db.scalar(select(func.count(model.id)).where(model.clinic_id == clinic_id)) or 0)


def _clinic_out(db: Session, clinic: Clinic) -> ClinicOut:
    return ClinicOut(
        id=clinic.id,
        name=clinic.name,
        address=clinic.address,
        phone=clinic.phone,
        created_at=clinic.created_at,
        users=[UserSummary.model_validate(user) for user in clinic.users],
        services=[ServiceSummary.model_validate(service) for service in clinic.services],
        counts=ClinicCounts(
            users=_count(db, User, clinic.id),
            services=_count(db, Service, clinic.id),
            appointments=_count(db, Appointment, clinic.id),
        ),
    )


def _load_own_clinic(db: Session, ctx: RequestContext, action: Action) -> Clinic:
    authorize(ctx, Entity.clinic, action)
    if ctx.clinic_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No clinic associated with this user"
        )
    clinic = db.get(Clinic, ctx.clinic_id)
    if not clinic:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Clinic not found")
    ensure_allowed(db, ctx, Entity.clinic, action, clinic)
    return clinic


@router.get("", response_model=ClinicOut)
def get_clinic(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    clinic = _load_own_clinic(db, ctx, Action.read)
    return _clinic_out(db, clinic)


@router.put("", response_model=ClinicOut)
def update_clinic(
    payload: ClinicUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    clinic = _load_own_clinic(db, ctx, Action.update)
    before_data = snapshot_model(clinic)
    clinic.name = payload.name.strip()
    clinic.address = payload.address.strip()
    clinic.phone = payload.phone.strip()
    log_event(
        db,
        ctx=ctx,
        action="clinic.updated",
        entity_type="clinic",
        entity_id=clinic.id,
        before_data=before_data,
        after_obj=clinic,
    )
    db.commit()
    db.refresh(clinic)
    return _clinic_out(db, clinic)
