from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.security import create_access_token, verify_password
from app.core.settings import settings
from app.db.session import get_db
from app.deps import RequestContext, get_current_user, get_request_context
from app.models.user import User
from app.schemas.auth import (
    ChangePasswordRequest,
    ChangePasswordResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    Token,
)
from app.schemas.user import UserOut
from app.services.audit import log_event
from app.services.rate_limit import SimpleRateLimiter
from app.services.users import (
    email_taken,
    get_user_by_email,
    normalize_email,
    register_clinic,
    set_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_LIMITER = SimpleRateLimiter(
    max_events=settings.login_attempts_per_minute, window_seconds=60, key_func=normalize_email
)
LOGIN_IP_LIMITER = SimpleRateLimiter(
    max_events=settings.login_attempts_per_minute * 2, window_seconds=60
)


def issue_token(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        role=user.role,
        clinic_id=user.clinic_id,
        secret=settings.secret_key,
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    if email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    user = register_clinic(
        db,
        email=payload.email,
        password=payload.password,
        clinic_name=payload.clinic_name.strip(),
        clinic_address=payload.clinic_address.strip(),
        clinic_phone=payload.clinic_phone.strip(),
    )
    log_event(
        db,
        ctx=None,
        action="clinic.registered",
        entity_type="clinic",
        entity_id=user.clinic_id,
        clinic_id=user.clinic_id,
        after_data={"admin_email": user.email},
    )
    db.commit()
    return RegisterResponse(message="Registration successful", user_id=user.id, clinic_id=user.clinic_id)


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    ip_address = request.client.host if request.client else "unknown"
    for limiter, key in ((LOGIN_LIMITER, payload.email), (LOGIN_IP_LIMITER, ip_address)):
        if not limiter.allow(key):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many login attempts",
                headers={"Retry-After": str(limiter.retry_after(key))},
            )

    user = get_user_by_email(db, payload.email)
    if user and not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return Token(access_token=issue_token(user), must_change_password=user.must_change_password)


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/change-password", response_model=ChangePasswordResponse)
def change_password(
    payload: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
):
    if not user.must_change_password:
        if not payload.old_password or not verify_password(payload.old_password, user.hashed_password):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    set_password(db, user=user, new_password=payload.new_password)
    log_event(
        db,
        ctx=ctx,
        action="user.password_changed",
        entity_type="user",
        entity_id=user.id,
        after_data={"status": "changed"},
    )
    db.commit()
    return ChangePasswordResponse(message="Password updated")
