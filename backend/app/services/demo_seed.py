from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.appointment import Appointment, AppointmentStatus
from app.models.base import utcnow
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.models.service import Service
from app.models.user import Role
from app.services.users import build_user, get_user_by_email, register_clinic

DEMO_ADMIN_EMAIL = "admin@medflow.example.com"
DEMO_DOCTOR_EMAIL = "doctor@medflow.example.com"
DEMO_RECEPTIONIST_EMAIL = "reception@medflow.example.com"
DEMO_PATIENT_EMAIL = "patient@medflow.example.com"


def seed_demo_clinic(db: Session, *, password: str) -> dict:
    """Create a demo clinic with one user per role. Skips when the demo admin exists."""
    if get_user_by_email(db, DEMO_ADMIN_EMAIL):
        return {"created": False, "admin_email": DEMO_ADMIN_EMAIL}

    admin = register_clinic(
        db,
        email=DEMO_ADMIN_EMAIL,
        password=password,
        clinic_name="MedFlow Demo Clinic",
        clinic_address="1 Example Street",
        clinic_phone="+1 555 0100",
    )
    clinic_id = admin.clinic_id

    doctor = Doctor(
        user=build_user(
            email=DEMO_DOCTOR_EMAIL, password=password, role=Role.doctor, clinic_id=clinic_id
        ),
        specialization="General Practice",
        license_number="GP-0001",
    )
    receptionist = build_user(
        email=DEMO_RECEPTIONIST_EMAIL,
        password=password,
        role=Role.receptionist,
        clinic_id=clinic_id,
    )
    patient = Patient(
        user=build_user(
            email=DEMO_PATIENT_EMAIL, password=password, role=Role.patient, clinic_id=None
        ),
        registered_clinic_id=clinic_id,
        first_name="Alex",
        last_name="Demo",
        phone="+1 555 0199",
        date_of_birth=date(1990, 4, 12),
    )
    services = [
        Service(clinic_id=clinic_id, name="General consultation", price=Decimal("60.00")),
        Service(clinic_id=clinic_id, name="Follow-up visit", price=Decimal("35.00")),
    ]
    db.add_all([doctor, receptionist, patient, *services])
    db.flush()

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        clinic_id=clinic_id,
        scheduled_at=utcnow() + timedelta(days=1),
        status=AppointmentStatus.scheduled,
        notes="Demo appointment",
    )
    db.add(appointment)
    db.flush()
    return {
        "created": True,
        "clinic_id": clinic_id,
        "admin_email": DEMO_ADMIN_EMAIL,
        "doctor_email": DEMO_DOCTOR_EMAIL,
        "receptionist_email": DEMO_RECEPTIONIST_EMAIL,
        "patient_email": DEMO_PATIENT_EMAIL,
        "appointment_id": appointment.id,
    }
