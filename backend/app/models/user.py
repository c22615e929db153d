from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class Role(str, enum.Enum):
    admin = "ADMIN"
    doctor = "DOCTOR"
    receptionist = "RECEPTIONIST"
    patient = "PATIENT"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role_enum", values_callable=lambda e: [m.value for m in e]),
        default=Role.patient,
        nullable=False,
    )
    clinic_id: Mapped[int | None] = mapped_column(
        ForeignKey("clinics.id"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    clinic = relationship("Clinic", back_populates="users")
    doctor = relationship(
        "Doctor", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    patient = relationship(
        "Patient", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
