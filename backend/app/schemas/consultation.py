from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.summaries import (
    AppointmentSummary,
    ConsultationSummary,
    PrescriptionSummary,
)


class ConsultationCreate(BaseModel):
    appointment_id: int
    diagnosis: str = Field(min_length=1)
    treatment: str = Field(min_length=1)


class ConsultationUpdate(BaseModel):
    diagnosis: Optional[str] = Field(default=None, min_length=1)
    treatment: Optional[str] = Field(default=None, min_length=1)


class ConsultationOut(ConsultationSummary):
    appointment_id: int
    updated_at: datetime
    appointment: AppointmentSummary
    prescriptions: list[PrescriptionSummary] = []
