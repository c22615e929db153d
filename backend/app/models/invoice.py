from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, CreatedAtMixin


class InvoiceStatus(str, enum.Enum):
    pending = "PENDING"
    paid = "PAID"
    cancelled = "CANCELLED"


class Invoice(Base, CreatedAtMixin):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    clinic_id: Mapped[int | None] = mapped_column(
        ForeignKey("clinics.id"), nullable=True, index=True
    )
    consultation_id: Mapped[int | None] = mapped_column(
        ForeignKey("consultations.id", ondelete="SET NULL"), unique=True, nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        Enum(InvoiceStatus, name="invoice_status", values_callable=lambda e: [m.value for m in e]),
        default=InvoiceStatus.pending,
        nullable=False,
        index=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_payment_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    patient = relationship("Patient", back_populates="invoices", lazy="joined")
    consultation = relationship("Consultation", back_populates="invoice")
