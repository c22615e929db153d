from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.invoice import InvoiceStatus
from app.schemas.summaries import InvoiceSummary, PatientSummary


class InvoiceCreate(BaseModel):
    patient_id: int
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class InvoiceUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceOut(InvoiceSummary):
    patient: PatientSummary


class CheckoutOut(BaseModel):
    url: str
    session_id: str


class VerifyPaymentRequest(BaseModel):
    session_id: str = Field(min_length=1)


class VerifyPaymentOut(BaseModel):
    success: bool
    message: str
    invoice_id: Optional[int] = None
    payment_status: Optional[str] = None
    invoice_status: Optional[InvoiceStatus] = None
