from app.models import Prescription


def test_doctor_writes_prescription(api_client, factory, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    consultation = factory.consultation(appointment)
    response = api_client.post(
        "/prescriptions",
        json={
            "consultation_id": consultation.id,
            "medications": "Amoxicillin 500mg three times daily",
            "instructions": "Take with food",
        },
        headers=clinic_a.headers["doctor"],
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["consultation"]["appointment"]["patient"]["id"] == clinic_a.patient.id
    assert body["pdf_url"] is None


def test_prescription_requires_medications(api_client, factory, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    consultation = factory.consultation(appointment)
    response = api_client.post(
        "/prescriptions",
        json={"consultation_id": consultation.id},
        headers=clinic_a.headers["doctor"],
    )
    assert response.status_code == 400


def test_other_doctor_cannot_prescribe(api_client, factory, clinic_a):
    colleague = factory.doctor(clinic_a.clinic)
    appointment = factory.appointment(clinic_a.patient, colleague)
    consultation = factory.consultation(appointment)
    response = api_client.post(
        "/prescriptions",
        json={"consultation_id": consultation.id, "medications": "Ibuprofen"},
        headers=clinic_a.headers["doctor"],
    )
    assert response.status_code == 403


def test_export_pdf(api_client, factory, db_session, clinic_a):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    consultation = factory.consultation(appointment)
    prescription = factory.prescription(consultation, instructions="Avoid alcohol")

    response = api_client.post(
        f"/prescriptions/{prescription.id}/pdf", headers=clinic_a.headers["patient"]
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert (
        response.headers["content-disposition"]
        == f'attachment; filename="prescription-{prescription.id}.pdf"'
    )
    assert response.content.startswith(b"%PDF")

    db_session.expire_all()
    stored = db_session.get(Prescription, prescription.id)
    assert stored.pdf_url == f"/prescriptions/{prescription.id}/pdf"

    again = api_client.post(
        f"/prescriptions/{prescription.id}/pdf", headers=clinic_a.headers["receptionist"]
    )
    assert again.status_code == 200
    assert again.content.startswith(b"%PDF")


def test_export_pdf_scope(api_client, factory, clinic_a, clinic_b):
    appointment = factory.appointment(clinic_a.patient, clinic_a.doctor)
    prescription = factory.prescription(factory.consultation(appointment))

    other_clinic = api_client.post(
        f"/prescriptions/{prescription.id}/pdf", headers=clinic_b.headers["receptionist"]
    )
    assert other_clinic.status_code == 403
    missing = api_client.post("/prescriptions/8080/pdf", headers=clinic_a.headers["admin"])
    assert missing.status_code == 404


def test_prescription_list_is_scoped(api_client, factory, clinic_a, clinic_b):
    mine = factory.prescription(factory.consultation(factory.appointment(clinic_a.patient, clinic_a.doctor)))
    factory.prescription(factory.consultation(factory.appointment(clinic_b.patient, clinic_b.doctor)))

    for role in ("admin", "doctor", "patient"):
        listed = api_client.get("/prescriptions", headers=clinic_a.headers[role]).json()
        assert [item["id"] for item in listed] == [mine.id], role
