from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.service import Service
from app.schemas.service import ServiceCreate, ServiceOut, ServiceUpdate
from app.services.audit import log_event, snapshot_model
from app.services.policy import Action, Entity, authorize, ensure_allowed, scoped

router = APIRouter(prefix="/services", tags=["services"])


def _get_service(db: Session, ctx: RequestContext, service_id: int, action: Action) -> Service:
    authorize(ctx, Entity.service, action)
    service = db.get(Service, service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    ensure_allowed(db, ctx, Entity.service, action, service)
    return service


@router.get("", response_model=list[ServiceOut])
def list_services(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    search: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.service, Action.list)
    stmt = scoped(select(Service), ctx, Entity.service, scope)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Service.name.ilike(like), Service.description.ilike(like)))
    if is_active is not None:
        stmt = stmt.where(Service.is_active.is_(is_active))
    stmt = stmt.order_by(Service.name).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.post("", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def create_service(
    payload: ServiceCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.service, Action.create)
    service = Service(
        clinic_id=ctx.clinic_id,
        name=payload.name.strip(),
        description=payload.description,
        price=payload.price,
        is_active=payload.is_active,
    )
    db.add(service)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="service.created",
        entity_type="service",
        entity_id=service.id,
        after_obj=service,
    )
    db.commit()
    db.refresh(service)
    return service


@router.get("/{service_id}", response_model=ServiceOut)
def get_service(
    service_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _get_service(db, ctx, service_id, Action.read)


@router.patch("/{service_id}", response_model=ServiceOut)
def update_service(
    service_id: int,
    payload: ServiceUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    service = _get_service(db, ctx, service_id, Action.update)
    before_data = snapshot_model(service)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field in {"name", "price", "is_active"} and value is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty"
            )
        setattr(service, field, value)
    log_event(
        db,
        ctx=ctx,
        action="service.updated",
        entity_type="service",
        entity_id=service.id,
        before_data=before_data,
        after_obj=service,
    )
    db.commit()
    db.refresh(service)
    return service


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    service = _get_service(db, ctx, service_id, Action.delete)
    log_event(
        db,
        ctx=ctx,
        action="service.deleted",
        entity_type="service",
        entity_id=service.id,
        before_obj=service,
    )
    db.delete(service)
    db.commit()
