from decimal import Decimal

from conftest import minutes_ago

from app.core.settings import settings
from app.models import Appointment, AppointmentStatus, Consultation, Invoice, InvoiceStatus
from app.services import consultations as consultation_service

PAYLOAD = {"diagnosis": "Acute bronchitis", "treatment": "Rest and fluids"}


def _consult(api_client, headers, appointment_id, **overrides):
    body = {"appointment_id": appointment_id, **PAYLOAD, **overrides}
    return api_client.post("/consultations", json=body, headers=headers)


def test_consultation_completes_appointment_and_invoices_service_price(
    api_client, factory, db_session, clinic_a
):
    factory.service(clinic_a.clinic, name="Old", price="30.00", created_at=minutes_ago(60))
    factory.service(clinic_a.clinic, name="Newest", price="95.00")
    factory.service(clinic_a.clinic, name="Retired", price="10.00", is_active=False)
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)

    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["appointment"]["status"] == "COMPLETED"
    assert body["appointment"]["patient"]["id"] == clinic_a.patient.id

    db_session.expire_all()
    assert db_session.get(Appointment, appointment.id).status == AppointmentStatus.completed
    invoice = db_session.query(Invoice).one()
    assert invoice.amount == Decimal("95.00")
    assert invoice.status == InvoiceStatus.pending
    assert invoice.consultation_id == body["id"]
    assert invoice.clinic_id == clinic_a.clinic.id


def test_consultation_uses_default_fee_without_services(api_client, factory, db_session, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 201

    invoice = db_session.query(Invoice).one()
    assert invoice.amount == settings.default_consultation_fee


def test_second_consultation_for_appointment_is_rejected(api_client, factory, db_session, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    first = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert first.status_code == 201

    second = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert second.status_code == 400
    assert db_session.query(Consultation).count() == 1
    assert db_session.query(Invoice).count() == 1


def test_recent_pending_invoice_blocks_automatic_invoice(api_client, factory, db_session, clinic_a):
    factory.invoice(clinic_a.patient, clinic_a.clinic, created_at=minutes_ago(2))
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)

    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 201
    assert db_session.query(Invoice).count() == 1


def test_old_pending_invoice_does_not_block(api_client, factory, db_session, clinic_a):
    factory.invoice(clinic_a.patient, clinic_a.clinic, created_at=minutes_ago(30))
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)

    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 201
    assert db_session.query(Invoice).count() == 2


def test_invoice_failure_keeps_consultation(api_client, factory, db_session, clinic_a, monkeypatch):
    def _boom(db, clinic_id):
        raise RuntimeError("pricing unavailable")

    monkeypatch.setattr(consultation_service, "resolve_invoice_amount", _boom)
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)

    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 201
    assert db_session.query(Consultation).count() == 1
    assert db_session.query(Invoice).count() == 0


def test_only_the_appointment_doctor_records_consultation(api_client, factory, clinic_a):
    colleague = factory.doctor(clinic_a.clinic)
    appointment = factory.appointment(clinic_a.patient, colleague)

    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 403

    receptionist = _consult(api_client, clinic_a.headers["receptionist"], appointment.id)
    assert receptionist.status_code == 403


def test_consultation_validation_and_missing_appointment(api_client, factory, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    missing_field = api_client.post(
        "/consultations",
        json={"appointment_id": appointment.id, "diagnosis": "Flu"},
        headers=clinic_a.headers["doctor"],
    )
    assert missing_field.status_code == 400

    missing = _consult(api_client, clinic_a.headers["doctor"], 987654)
    assert missing.status_code == 404


def test_cancelled_appointment_cannot_be_consulted(api_client, factory, clinic_a):
    appointment = factory.appointment(
        clinic_a.patient, clinic_a.doctor, status=AppointmentStatus.cancelled
    )
    response = _consult(api_client, clinic_a.headers["doctor"], appointment.id)
    assert response.status_code == 400


def test_doctor_updates_consultation(api_client, factory, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    consultation = factory.consultation(appointment)
    response = api_client.patch(
        f"/consultations/{consultation.id}",
        json={"treatment": "Inhaler as needed"},
        headers=clinic_a.headers["doctor"],
    )
    assert response.status_code == 200
    assert response.json()["treatment"] == "Inhaler as needed"
    assert response.json()["diagnosis"] == "Seasonal allergy"

    patient_view = api_client.get(
        f"/consultations/{consultation.id}", headers=clinic_a.headers["patient"]
    )
    assert patient_view.status_code == 200
    assert (
        api_client.patch(
            f"/consultations/{consultation.id}",
            json={"treatment": "x"},
            headers=clinic_a.headers["patient"],
        ).status_code
        == 403
    )
