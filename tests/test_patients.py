# tests/test_patients.py


def test_create_patient_with_procedures(client, staff, patient_payload, procedure_payload):
    response = client.post(
        "/api/patients",
        json=patient_payload(procedures=[procedure_payload(), procedure_payload(scheduleDate="2025-04-01", scheduleTime="1:00 PM")]),
        headers=staff.headers,
    )
    assert response.status_code == 200
    patient = response.json()
    assert patient["firstName"] == "John"
    assert patient["dateOfBirth"] == "1980-01-15"
    assert patient["phone"] == "5551234567"
    assert patient["gender"] == "unknown"
    assert patient["payer"]["name"] == "Self Pay"
    assert patient["status"]["name"] == "Scheduled"
    procedures = patient["procedures"]
    assert [p["scheduleDate"] for p in procedures] == ["2025-03-15", "2025-04-01"]
    assert procedures[1]["scheduleTime"] == "13:00:00"
    assert procedures[0]["exam"]["name"] == "MRI Lumbar"
    assert procedures[0]["physician"]["prefix"] == "Dr."
    assert procedures[0]["isCompleted"] is False


def test_missing_reference_names_the_field(client, staff, patient_payload, procedure_payload):
    response = client.post("/api/patients", json=patient_payload(payerId="nope"), headers=staff.headers)
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "payerId", "reason": "Payer nope does not exist"}]

    response = client.post(
        "/api/patients", json=patient_payload(procedures=[procedure_payload(facilityId="nope")]), headers=staff.headers,
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "procedures.0.facilityId"
    # Nothing was written
    assert client.get("/api/patients", headers=staff.headers).json() == []


def test_invalid_date_is_rejected(client, staff, patient_payload):
    response = client.post("/api/patients", json=patient_payload(dateOfBirth="13/45/1980"), headers=staff.headers)
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["field"] == "dateOfBirth"
    assert error["reason"] == "Invalid date. Please use MM/DD/YYYY"


def test_update_replaces_procedure_set(client, staff, patient_payload, procedure_payload):
    patient = client.post(
        "/api/patients",
        json=patient_payload(procedures=[procedure_payload(), procedure_payload(scheduleDate="04/01/2025")]),
        headers=staff.headers,
    ).json()
    keep, drop = patient["procedures"]

    response = client.put(
        f"/api/patients/{patient['id']}",
        json={
            "phone": "555.987.6543",
            "procedures": [
                procedure_payload(id=keep["id"], isCompleted=True, lop="Signed"),
                procedure_payload(scheduleDate="05/01/2025"),
            ],
        },
        headers=staff.headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["phone"] == "5559876543"
    assert body["firstName"] == "John"
    by_id = {p["id"]: p for p in body["procedures"]}
    assert keep["id"] in by_id and drop["id"] not in by_id
    assert by_id[keep["id"]]["isCompleted"] is True
    assert by_id[keep["id"]]["lop"] == "Signed"
    assert len(body["procedures"]) == 2
    assert client.get(f"/api/procedures/{drop['id']}", headers=staff.headers).status_code == 404


def test_update_without_procedures_leaves_them(client, staff, patient_payload, procedure_payload):
    patient = client.post(
        "/api/patients", json=patient_payload(procedures=[procedure_payload()]), headers=staff.headers,
    ).json()
    body = client.put(f"/api/patients/{patient['id']}", json={"city": "Austin"}, headers=staff.headers).json()
    assert body["city"] == "Austin"
    assert len(body["procedures"]) == 1


def test_update_rejects_null_required_field(client, staff, patient_payload):
    patient = client.post("/api/patients", json=patient_payload(), headers=staff.headers).json()
    response = client.put(f"/api/patients/{patient['id']}", json={"lastName": None}, headers=staff.headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "lastName"


def test_search_and_filters(client, staff, patient_payload, reference_data, admin):
    client.post("/api/patients", json=patient_payload(firstName="Alice", lastName="Smith"), headers=staff.headers)
    client.post("/api/patients", json=patient_payload(firstName="Bob", lastName="Jones"), headers=staff.headers)

    found = client.get("/api/patients?search=smi", headers=staff.headers).json()
    assert [p["firstName"] for p in found] == ["Alice"]
    found = client.get("/api/patients?search=bob%20jon", headers=staff.headers).json()
    assert [p["lastName"] for p in found] == ["Jones"]

    newest_first = client.get("/api/patients", headers=staff.headers).json()
    assert [p["firstName"] for p in newest_first] == ["Bob", "Alice"]

    other_status = client.post("/api/statuses", json={"name": "On Hold"}, headers=admin.headers).json()
    assert client.get(f"/api/patients?statusId={other_status['id']}", headers=staff.headers).json() == []
    assert len(client.get(f"/api/patients?payerId={reference_data.payer_id}", headers=staff.headers).json()) == 2
    assert len(client.get("/api/patients?limit=1", headers=staff.headers).json()) == 1


def test_unknown_patient_is_not_found(client, staff):
    assert client.get("/api/patients/missing", headers=staff.headers).status_code == 404
    assert client.put("/api/patients/missing", json={"city": "X"}, headers=staff.headers).status_code == 404


def test_delete_requires_admin_and_cascades(client, admin, staff, patient_payload, procedure_payload):
    patient = client.post(
        "/api/patients", json=patient_payload(procedures=[procedure_payload()]), headers=staff.headers,
    ).json()
    case = client.post(
        "/api/cases", json={"patientId": patient["id"], "caseNumber": "CASE-1"}, headers=staff.headers,
    ).json()
    appointment = client.post(
        "/api/appointments", json={"patientId": patient["id"], "date": "06/01/2025", "time": "10:00"}, headers=staff.headers,
    ).json()

    assert client.delete(f"/api/patients/{patient['id']}", headers=staff.headers).status_code == 403

    response = client.delete(f"/api/patients?id={patient['id']}", headers=admin.headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Patient deleted successfully"}
    assert client.get(f"/api/patients/{patient['id']}", headers=admin.headers).status_code == 404
    assert client.get(f"/api/procedures?patientId={patient['id']}", headers=admin.headers).json() == []
    assert client.get(f"/api/cases/{case['id']}", headers=admin.headers).status_code == 404
    assert client.get(f"/api/appointments/{appointment['id']}", headers=admin.headers).status_code == 404

    # Audit entries survive without the patient link
    events = client.get("/api/events?entityType=Patient", headers=admin.headers).json()
    assert [e["action"] for e in events] == ["DELETE", "CREATE"]
    assert all(e["patientId"] is None for e in events)


def test_mutations_write_events(client, staff, patient_payload):
    patient = client.post("/api/patients", json=patient_payload(), headers=staff.headers).json()
    client.put(f"/api/patients/{patient['id']}", json={"city": "Austin"}, headers=staff.headers)

    events = client.get(f"/api/events?patientId={patient['id']}", headers=staff.headers).json()
    assert [e["action"] for e in events] == ["UPDATE", "CREATE"]
    assert events[0]["userId"] == staff.id
    assert events[0]["user"]["email"] == staff.email
    assert events[0]["entityId"] == patient["id"]
    assert "city" in events[0]["description"]
