from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.invoice import Invoice
from app.models.patient import Patient
from app.schemas.stats import StatsOut
from app.services.policy import Action, Entity, Scope, authorize, scope_clause

router = APIRouter(prefix="/stats", tags=["stats"])


def _clinic_count(db: Session, ctx: RequestContext, entity: Entity, model) -> int:
    stmt = select(func.count(model.id)).where(scope_clause(ctx, entity, Scope.clinic))
    return int(db.scalar(stmt) or 0)


@router.get("", response_model=StatsOut)
def get_stats(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.stats, Action.read)
    return StatsOut(
        patients=_clinic_count(db, ctx, Entity.patient, Patient),
        doctors=_clinic_count(db, ctx, Entity.doctor, Doctor),
        appointments=_clinic_count(db, ctx, Entity.appointment, Appointment),
        invoices=_clinic_count(db, ctx, Entity.invoice, Invoice),
    )
