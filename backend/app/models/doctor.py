from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, CreatedAtMixin


class Doctor(Base, CreatedAtMixin):
    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    specialization: Mapped[str] = mapped_column(String(120), nullable=False)
    license_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    user = relationship("User", back_populates="doctor", lazy="joined")
    appointments = relationship(
        "Appointment", back_populates="doctor", order_by="Appointment.scheduled_at.desc()"
    )

    @property
    def email(self) -> str:
        return self.user.email

    @property
    def clinic_id(self) -> int | None:
        return self.user.clinic_id
