import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-1234"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_placeholder"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_placeholder"

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.db.session import SessionLocal, engine
from app.main import app
from app.models import (
    Appointment,
    AppointmentStatus,
    Base,
    Clinic,
    Consultation,
    Doctor,
    Invoice,
    InvoiceStatus,
    Patient,
    Prescription,
    Role,
    Service,
    User,
)
from app.routers.auth import LOGIN_IP_LIMITER, LOGIN_LIMITER, issue_token
from app.services.users import build_user


@pytest.fixture(autouse=True)
def _database():
    Base.metadata.create_all(bind=engine)
    LOGIN_LIMITER.reset()
    LOGIN_IP_LIMITER.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def api_client():
    return TestClient(app)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def auth_headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user)}"}


class Factory:
    """Persists fixture rows and commits each one so API calls can see them."""

    def __init__(self, session):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def clinic(self, name: str = "Northside Clinic") -> Clinic:
        return self._save(Clinic(name=name, address="12 Harbour Road", phone="+1 555 0101"))

    def user(
        self,
        role: Role,
        clinic: Clinic | None,
        *,
        email: str | None = None,
        password: str | None = None,
    ) -> User:
        email = email or f"{role.value.lower()}{self._next()}@example.com"
        return self._save(
            build_user(
                email=email,
                password=password,
                role=role,
                clinic_id=clinic.id if clinic else None,
            )
        )

    def doctor(
        self,
        clinic: Clinic,
        *,
        email: str | None = None,
        specialization: str = "Cardiology",
    ) -> Doctor:
        user = self.user(Role.doctor, clinic, email=email)
        return self._save(
            Doctor(user_id=user.id, specialization=specialization, license_number="LIC-100")
        )

    def patient(
        self,
        clinic: Clinic | None = None,
        *,
        with_login: bool = False,
        first_name: str = "Jane",
        last_name: str = "Doe",
    ) -> Patient:
        user = self.user(Role.patient, None) if with_login else None
        return self._save(
            Patient(
                user_id=user.id if user else None,
                registered_clinic_id=clinic.id if clinic else None,
                first_name=first_name,
                last_name=last_name,
                phone="+1 555 0150",
                date_of_birth=date(1985, 6, 1),
            )
        )

    def service(
        self,
        clinic: Clinic,
        *,
        name: str = "General consultation",
        price: str = "80.00",
        is_active: bool = True,
        created_at: datetime | None = None,
    ) -> Service:
        service = Service(
            clinic_id=clinic.id, name=name, price=Decimal(price), is_active=is_active
        )
        if created_at is not None:
            service.created_at = created_at
        return self._save(service)

    def appointment(
        self,
        patient: Patient,
        doctor: Doctor,
        *,
        status: AppointmentStatus = AppointmentStatus.scheduled,
        scheduled_at: datetime | None = None,
    ) -> Appointment:
        return self._save(
            Appointment(
                patient_id=patient.id,
                doctor_id=doctor.id,
                clinic_id=doctor.clinic_id,
                scheduled_at=scheduled_at or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
                status=status,
            )
        )

    def consultation(self, appointment: Appointment) -> Consultation:
        consultation = self._save(
            Consultation(
                appointment_id=appointment.id,
                diagnosis="Seasonal allergy",
                treatment="Antihistamines for two weeks",
            )
        )
        appointment = self.session.get(Appointment, appointment.id)
        appointment.status = AppointmentStatus.completed
        self.session.commit()
        return consultation

    def prescription(self, consultation: Consultation, *, instructions: str | None = None) -> Prescription:
        return self._save(
            Prescription(
                consultation_id=consultation.id,
                medications="Cetirizine 10mg once daily",
                instructions=instructions,
            )
        )

    def invoice(
        self,
        patient: Patient,
        clinic: Clinic,
        *,
        amount: str = "40.00",
        status: InvoiceStatus = InvoiceStatus.pending,
        created_at: datetime | None = None,
    ) -> Invoice:
        invoice = Invoice(
            patient_id=patient.id, clinic_id=clinic.id, amount=Decimal(amount), status=status
        )
        if created_at is not None:
            invoice.created_at = created_at
        return self._save(invoice)


@pytest.fixture
def factory(db_session):
    return Factory(db_session)


@dataclass
class ClinicSetup:
    clinic: Clinic
    admin: User
    receptionist: User
    doctor: Doctor
    patient: Patient
    headers: dict[str, dict[str, str]] = field(default_factory=dict)


def build_clinic_setup(factory: Factory, name: str) -> ClinicSetup:
    clinic = factory.clinic(name)
    admin = factory.user(Role.admin, clinic)
    receptionist = factory.user(Role.receptionist, clinic)
    doctor = factory.doctor(clinic)
    patient = factory.patient(clinic, with_login=True)
    setup = ClinicSetup(
        clinic=clinic, admin=admin, receptionist=receptionist, doctor=doctor, patient=patient
    )
    setup.headers = {
        "admin": auth_headers_for(admin),
        "receptionist": auth_headers_for(receptionist),
        "doctor": auth_headers_for(doctor.user),
        "patient": auth_headers_for(patient.user),
    }
    return setup


@pytest.fixture
def clinic_a(factory):
    return build_clinic_setup(factory, "Northside Clinic")


@pytest.fixture
def clinic_b(factory):
    return build_clinic_setup(factory, "Southside Clinic")


def minutes_ago(minutes: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)
