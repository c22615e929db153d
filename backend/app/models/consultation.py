from __future__ import annotations

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class Consultation(Base, TimestampMixin):
    __tablename__ = "consultations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    appointment_id: Mapped[int] = mapped_column(
        ForeignKey("appointments.id"), unique=True, nullable=False
    )
    diagnosis: Mapped[str] = mapped_column(Text, nullable=False)
    treatment: Mapped[str] = mapped_column(Text, nullable=False)

    appointment = relationship("Appointment", back_populates="consultation", lazy="joined")
    prescriptions = relationship(
        "Prescription",
        back_populates="consultation",
        cascade="all, delete-orphan",
        order_by="Prescription.created_at.desc()",
    )
    invoice = relationship("Invoice", back_populates="consultation", uselist=False)
