from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.appointment import AppointmentStatus
from app.schemas.summaries import ConsultationSummary, DoctorSummary, PatientSummary


class DoctorCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    specialization: str = Field(min_length=1, max_length=120)
    license_number: Optional[str] = Field(default=None, max_length=64)


class DoctorUpdate(BaseModel):
    specialization: Optional[str] = Field(default=None, min_length=1, max_length=120)
    license_number: Optional[str] = Field(default=None, max_length=64)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=72)


class DoctorOut(DoctorSummary):
    created_at: datetime


class DoctorAppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_id: int
    scheduled_at: datetime
    status: AppointmentStatus
    notes: Optional[str] = None
    patient: PatientSummary
    consultation: Optional[ConsultationSummary] = None


class DoctorDetailOut(DoctorOut):
    appointments: list[DoctorAppointmentOut] = []
