from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.deps import RequestContext, get_request_context
from app.models.user import Role, User
from app.schemas.user import StaffCreate, StaffUpdate, UserOut
from app.services.audit import log_event, snapshot_model
from app.services.policy import Action, Entity, authorize, ensure_allowed, scoped
from app.services.users import build_user, email_taken, update_credentials

router = APIRouter(prefix="/staff", tags=["staff"])


def _get_receptionist(db: Session, ctx: RequestContext, user_id: int, action: Action) -> User:
    authorize(ctx, Entity.staff, action)
    user = db.get(User, user_id)
    if not user or user.role != Role.receptionist:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found")
    ensure_allowed(db, ctx, Entity.staff, action, user)
    return user


@router.get("", response_model=list[UserOut])
def list_staff(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    scope = authorize(ctx, Entity.staff, Action.list)
    stmt = scoped(select(User).where(User.role == Role.receptionist), ctx, Entity.staff, scope)
    stmt = stmt.order_by(User.email).limit(limit).offset(offset)
    return list(db.scalars(stmt))


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_staff(
    payload: StaffCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    authorize(ctx, Entity.staff, Action.create)
    if email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    user = build_user(
        email=payload.email,
        password=payload.password,
        role=Role.receptionist,
        clinic_id=ctx.clinic_id,
    )
    db.add(user)
    db.flush()
    log_event(
        db,
        ctx=ctx,
        action="staff.created",
        entity_type="user",
        entity_id=user.id,
        after_obj=user,
    )
    db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserOut)
def get_staff(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return _get_receptionist(db, ctx, user_id, Action.read)


@router.patch("/{user_id}", response_model=UserOut)
def update_staff(
    user_id: int,
    payload: StaffUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    user = _get_receptionist(db, ctx, user_id, Action.update)
    data = payload.model_dump(exclude_unset=True)
    if data.get("email") and email_taken(db, data["email"], exclude_user_id=user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    before_data = snapshot_model(user)
    update_credentials(user, email=data.get("email"), password=data.get("password"))
    if data.get("is_active") is not None:
        user.is_active = data["is_active"]
    log_event(
        db,
        ctx=ctx,
        action="staff.updated",
        entity_type="user",
        entity_id=user.id,
        before_data=before_data,
        after_obj=user,
    )
    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_staff(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    user = _get_receptionist(db, ctx, user_id, Action.delete)
    log_event(
        db,
        ctx=ctx,
        action="staff.deleted",
        entity_type="user",
        entity_id=user.id,
        before_obj=user,
    )
    db.delete(user)
    db.commit()
