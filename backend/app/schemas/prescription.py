from typing import Optional

from pydantic import BaseModel, Field

from app.schemas.summaries import AppointmentSummary, ConsultationSummary, PrescriptionSummary


class PrescriptionCreate(BaseModel):
    consultation_id: int
    medications: str = Field(min_length=1)
    instructions: Optional[str] = None


class PrescriptionConsultationOut(ConsultationSummary):
    appointment: AppointmentSummary


class PrescriptionOut(PrescriptionSummary):
    consultation_id: int
    consultation: PrescriptionConsultationOut
