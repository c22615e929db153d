def test_service_crud(api_client, clinic_a):
    headers = clinic_a.headers["admin"]
    created = api_client.post(
        "/services",
        json={"name": "Blood panel", "description": "Full panel", "price": "45.50"},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    service_id = created.json()["id"]
    assert created.json()["clinic_id"] == clinic_a.clinic.id

    updated = api_client.patch(f"/services/{service_id}", json={"is_active": False}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False
    assert updated.json()["name"] == "Blood panel"

    active = api_client.get("/services", params={"is_active": "true"}, headers=headers).json()
    assert service_id not in {item["id"] for item in active}

    assert api_client.delete(f"/services/{service_id}", headers=headers).status_code == 204
    assert api_client.get(f"/services/{service_id}", headers=headers).status_code == 404


def test_service_price_must_be_positive(api_client, clinic_a):
    response = api_client.post(
        "/services", json={"name": "Free", "price": "0"}, headers=clinic_a.headers["admin"]
    )
    assert response.status_code == 400


def test_receptionist_cannot_create_service(api_client, clinic_a):
    response = api_client.post(
        "/services", json={"name": "X", "price": "10.00"}, headers=clinic_a.headers["receptionist"]
    )
    assert response.status_code == 403


def test_patients_list_services_across_clinics(api_client, factory, clinic_a, clinic_b):
    factory.service(clinic_a.clinic, name="Checkup A")
    factory.service(clinic_b.clinic, name="Checkup B")
    response = api_client.get("/services", headers=clinic_a.headers["patient"])
    assert response.status_code == 200
    assert {item["name"] for item in response.json()} == {"Checkup A", "Checkup B"}
