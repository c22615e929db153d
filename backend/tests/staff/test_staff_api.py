from app.models import Role


def test_admin_manages_receptionists(api_client, clinic_a):
    headers = clinic_a.headers["admin"]
    created = api_client.post(
        "/staff",
        json={"email": "frontdesk@example.com", "password": "desk-password-1"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    staff_id = created.json()["id"]
    assert created.json()["role"] == "RECEPTIONIST"
    assert created.json()["clinic_id"] == clinic_a.clinic.id

    listed = api_client.get("/staff", headers=headers).json()
    assert {item["id"] for item in listed} == {clinic_a.receptionist.id, staff_id}

    updated = api_client.patch(f"/staff/{staff_id}", json={"is_active": False}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False

    deleted = api_client.delete(f"/staff/{staff_id}", headers=headers)
    assert deleted.status_code == 204
    assert api_client.get(f"/staff/{staff_id}", headers=headers).status_code == 404


def test_staff_duplicate_email(api_client, clinic_a):
    response = api_client.post(
        "/staff",
        json={"email": clinic_a.receptionist.email, "password": "desk-password-1"},
        headers=clinic_a.headers["admin"],
    )
    assert response.status_code == 400


def test_staff_endpoints_are_admin_only(api_client, clinic_a):
    assert api_client.get("/staff", headers=clinic_a.headers["receptionist"]).status_code == 403
    assert api_client.get("/staff", headers=clinic_a.headers["doctor"]).status_code == 403


def test_staff_id_must_be_a_receptionist(api_client, clinic_a):
    response = api_client.get(f"/staff/{clinic_a.doctor.user_id}", headers=clinic_a.headers["admin"])
    assert response.status_code == 404


def test_staff_from_other_clinic_is_forbidden(api_client, factory, clinic_a):
    other_clinic = factory.clinic("Elsewhere")
    outsider = factory.user(Role.receptionist, other_clinic)
    response = api_client.get(f"/staff/{outsider.id}", headers=clinic_a.headers["admin"])
    assert response.status_code == 403
