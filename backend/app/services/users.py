from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.clinic import Clinic
from app.models.user import Role, User


def normalize_email(email: str) -> str:
    return email.lower().strip()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == normalize_email(email)))


def email_taken(db: Session, email: str, *, exclude_user_id: int | None = None) -> bool:
    existing = get_user_by_email(db, email)
    return existing is not None and existing.id != exclude_user_id


def build_user(
    *,
    email: str,
    password: str | None,
    role: Role,
    clinic_id: int | None,
    must_change_password: bool = False,
) -> User:
    """Return an unsaved user; callers add it inside their own transaction."""
    return User(
        email=normalize_email(email),
        hashed_password=hash_password(password) if password else None,
        role=role,
        clinic_id=clinic_id,
        is_active=True,
        must_change_password=must_change_password,
    )


def register_clinic(
    db: Session,
    *,
    email: str,
    password: str,
    clinic_name: str,
    clinic_address: str = "",
    clinic_phone: str = "",
) -> User:
    clinic = Clinic(name=clinic_name, address=clinic_address, phone=clinic_phone)
    db.add(clinic)
    db.flush()
    user = build_user(email=email, password=password, role=Role.admin, clinic_id=clinic.id)
    db.add(user)
    db.flush()
    return user


def update_credentials(
    user: User,
    *,
    email: str | None = None,
    password: str | None = None,
) -> None:
    if email:
        user.email = normalize_email(email)
    if password:
        user.hashed_password = hash_password(password)
        user.must_change_password = False


def set_password(db: Session, *, user: User, new_password: str) -> User:
    user.hashed_password = hash_password(new_password)
    user.must_change_password = False
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
