def test_get_clinic_includes_users_services_and_counts(api_client, factory, clinic_a):
    factory.service(clinic_a.clinic)
    response = api_client.get("/clinic", headers=clinic_a.headers["receptionist"])
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["name"] == "Northside Clinic"
    assert body["counts"]["users"] == 3
    assert body["counts"]["services"] == 1
    assert len(body["services"]) == 1


def test_update_clinic_requires_all_fields(api_client, clinic_a):
    headers = clinic_a.headers["admin"]
    missing = api_client.put("/clinic", json={"name": "Renamed"}, headers=headers)
    assert missing.status_code == 400

    ok = api_client.put(
        "/clinic",
        json={"name": "Renamed", "address": "5 New Street", "phone": "+1 555 0999"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert ok.json()["name"] == "Renamed"


def test_only_admin_updates_clinic(api_client, clinic_a):
    response = api_client.put(
        "/clinic",
        json={"name": "Renamed", "address": "5 New Street", "phone": "+1 555 0999"},
        headers=clinic_a.headers["receptionist"],
    )
    assert response.status_code == 403


def test_patients_cannot_read_clinic(api_client, clinic_a):
    response = api_client.get("/clinic", headers=clinic_a.headers["patient"])
    assert response.status_code == 403


def test_audit_log_records_changes(api_client, clinic_a):
    headers = clinic_a.headers["admin"]
    api_client.put(
        "/clinic",
        json={"name": "Audited", "address": "5 New Street", "phone": "+1 555 0999"},
        headers=headers,
    )
    entries = api_client.get("/audit", params={"entity_type": "clinic"}, headers=headers)
    assert entries.status_code == 200
    actions = [entry["action"] for entry in entries.json()]
    assert "clinic.updated" in actions
    assert entries.json()[0]["before_json"]["name"] == "Northside Clinic"
