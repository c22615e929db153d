from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from app.models.appointment import AppointmentStatus
from app.schemas.summaries import (
    ConsultationSummary,
    DoctorSummary,
    InvoiceSummary,
    PatientSummary,
)


class PatientBase(BaseModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    date_of_birth: date
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None


class PatientCreate(PatientBase):
    email: Optional[EmailStr] = None
    temp_password: Optional[str] = Field(default=None, min_length=8, max_length=72)

    @model_validator(mode="after")
    def _login_needs_email(self):
        if self.temp_password and not self.email:
            raise ValueError("email is required when temp_password is set")
        return self


class PatientUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    date_of_birth: Optional[date] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = None


class PatientOut(PatientSummary):
    user_id: Optional[int] = None
    email: Optional[EmailStr] = None
    registered_clinic_id: Optional[int] = None
    address: Optional[str] = None
    created_at: datetime


class PatientAppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_id: int
    scheduled_at: datetime
    status: AppointmentStatus
    notes: Optional[str] = None
    doctor: DoctorSummary
    consultation: Optional[ConsultationSummary] = None


class PatientDetailOut(PatientOut):
    appointments: list[PatientAppointmentOut] = []
    invoices: list[InvoiceSummary] = []
