from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.appointment import AppointmentStatus
from app.schemas.summaries import (
    AppointmentSummary,
    ConsultationSummary,
    PrescriptionSummary,
)


class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    scheduled_at: datetime
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    scheduled_at: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None


class AppointmentOut(AppointmentSummary):
    patient_id: int
    doctor_id: int
    created_at: datetime
    updated_at: datetime
    consultation_id: Optional[int] = None


class AppointmentConsultationOut(ConsultationSummary):
    prescriptions: list[PrescriptionSummary] = []


class AppointmentDetailOut(AppointmentOut):
    model_config = ConfigDict(from_attributes=True)

    consultation: Optional[AppointmentConsultationOut] = None
