from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, CreatedAtMixin


class Clinic(Base, CreatedAtMixin):
    __tablename__ = "clinics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(300), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)

    users = relationship("User", back_populates="clinic", order_by="User.id")
    services = relationship("Service", back_populates="clinic", order_by="Service.id")
    appointments = relationship("Appointment", back_populates="clinic")
