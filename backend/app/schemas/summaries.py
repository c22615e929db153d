from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from app.models.appointment import AppointmentStatus
from app.models.invoice import InvoiceStatus
from app.models.user import Role


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    role: Role


class ServiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    is_active: bool


class PatientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    phone: Optional[str] = None
    date_of_birth: date


class DoctorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    email: EmailStr
    clinic_id: Optional[int] = None
    specialization: str
    license_number: Optional[str] = None


class ConsultationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    diagnosis: str
    treatment: str
    created_at: datetime


class PrescriptionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    medications: str
    instructions: Optional[str] = None
    pdf_url: Optional[str] = None
    created_at: datetime


class InvoiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    clinic_id: Optional[int] = None
    consultation_id: Optional[int] = None
    amount: Decimal
    status: InvoiceStatus
    created_at: datetime
    paid_at: Optional[datetime] = None
    stripe_payment_id: Optional[str] = None


class AppointmentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_id: int
    scheduled_at: datetime
    status: AppointmentStatus
    notes: Optional[str] = None
    patient: PatientSummary
    doctor: DoctorSummary
