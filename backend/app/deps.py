from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import InvalidTokenError, decode_user_id
from app.core.settings import settings
from app.db.session import get_db
from app.models.user import Role, User


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller, resolved once per request."""

    user_id: int
    email: str
    role: Role
    clinic_id: int | None
    request_id: str | None = None
    ip_address: str | None = None


def get_current_user(
    db: Session = Depends(get_db), authorization: str | None = Header(default=None)
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        user_id = decode_user_id(token, secret=settings.secret_key, alg=settings.jwt_alg)
    except InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.scalar(select(User).where(User.id == user_id))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


def get_request_context(
    request: Request,
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
) -> RequestContext:
    return RequestContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        clinic_id=user.clinic_id,
        request_id=x_request_id,
        ip_address=request.client.host if request.client else None,
    )

