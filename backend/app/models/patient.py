from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class Patient(Base, TimestampMixin):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=True
    )
    registered_clinic_id: Mapped[int | None] = mapped_column(
        ForeignKey("clinics.id"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    user = relationship("User", back_populates="patient", lazy="joined")
    appointments = relationship(
        "Appointment",
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="Appointment.scheduled_at.desc()",
    )
    invoices = relationship(
        "Invoice",
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="Invoice.created_at.desc()",
    )

    @property
    def email(self) -> str | None:
        return self.user.email if self.user else None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
