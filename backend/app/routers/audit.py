from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.audit_log import AuditLog
from app.schemas.audit_log import AuditLogOut
from app.services.policy import Action, Entity, authorize, scoped

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditLogOut])
def list_audit(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.audit, Action.list)
    stmt = scoped(select(AuditLog), ctx, Entity.audit, scope)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt))
