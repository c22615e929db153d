from app.models.base import Base
from app.models.clinic import Clinic
from app.models.user import Role, User
from app.models.audit_log import AuditLog
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.models.service import Service
from app.models.appointment import Appointment, AppointmentStatus
from app.models.consultation import Consultation
from app.models.prescription import Prescription
from app.models.invoice import Invoice, InvoiceStatus

__all__ = [
    "Base",
    "Clinic",
    "Role",
    "User",
    "AuditLog",
    "Doctor",
    "Patient",
    "Service",
    "Appointment",
    "AppointmentStatus",
    "Consultation",
    "Prescription",
    "Invoice",
    "InvoiceStatus",
]
