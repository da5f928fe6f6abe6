# tests/test_attorneys.py
import pytest

from app import crud, models

from conftest import auth_headers, make_user


def attorney_payload(**overrides):
    payload = {
        "name": "Saul Goodman",
        "email": "saul@example.com",
        "phone": "(505) 555-0100",
        "firm": "Goodman & Associates",
        "caseManagers": [
            {"name": "Francesca", "email": "fran@example.com", "phone": "505-555-0101", "phoneExt": "12"},
            {"name": "No Phone", "email": "nophone@example.com", "phone": ""},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def attorney(client, admin):
    response = client.post(
        "/api/attorneys",
        json=attorney_payload(hasLogin=True, password="CounselPass1!"),
        headers=admin.headers,
    )
    assert response.status_code == 200
    return response.json()


def login(client, email, password):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    client.cookies.clear()
    return response


def test_create_attorney_composite(client, attorney):
    assert attorney["user"]["name"] == "Saul Goodman"
    assert attorney["user"]["email"] == "saul@example.com"
    assert attorney["user"]["role"] == "ATTORNEY"
    assert attorney["phone"] == "5055550100"
    # Incomplete case manager rows are skipped
    assert [cm["name"] for cm in attorney["caseManagers"]] == ["Francesca"]
    assert attorney["caseManagers"][0]["phone"] == "5055550101"
    assert attorney["caseManagers"][0]["attorneyId"] == attorney["id"]


def test_attorney_with_login_can_authenticate(client, attorney):
    response = login(client, "saul@example.com", "CounselPass1!")
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "ATTORNEY"


def test_attorney_without_login_cannot_authenticate(client, admin, database):
    response = client.post("/api/attorneys", json=attorney_payload(password="ignored-pass"), headers=admin.headers)
    assert response.status_code == 200
    db = database.session()
    try:
        assert crud.get_user_by_email(db, "saul@example.com").password == ""
    finally:
        db.close()
    assert login(client, "saul@example.com", "ignored-pass").status_code == 401


def test_login_enabled_without_password_is_rejected(client, admin):
    response = client.post("/api/attorneys", json=attorney_payload(hasLogin=True), headers=admin.headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["reason"] == "Password is required when login access is enabled"


def test_duplicate_email_conflicts_without_partial_writes(client, admin, attorney):
    response = client.post(
        "/api/attorneys",
        json=attorney_payload(name="Someone Else", caseManagers=[{"name": "X", "email": "x@example.com", "phone": "5555555555"}]),
        headers=admin.headers,
    )
    assert response.status_code == 409
    attorneys = client.get("/api/attorneys", headers=admin.headers).json()
    assert len(attorneys) == 1
    managers = client.get("/api/case-managers", headers=admin.headers).json()
    assert [cm["name"] for cm in managers] == ["Francesca"]


def test_missing_required_field_is_validation_error(client, admin):
    response = client.post("/api/attorneys", json={"email": "a@example.com"}, headers=admin.headers)
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert {"field": "name", "reason": "Field required"} in body["errors"]


def test_get_attorney_by_query_id(client, admin, attorney):
    single = client.get(f"/api/attorneys?id={attorney['id']}", headers=admin.headers)
    assert single.status_code == 200
    assert single.json()["id"] == attorney["id"]
    assert client.get("/api/attorneys?id=missing", headers=admin.headers).status_code == 404
    listing = client.get("/api/attorneys", headers=admin.headers).json()
    assert isinstance(listing, list) and listing[0]["id"] == attorney["id"]


def test_update_password_rehashes_linked_user(client, admin, attorney):
    response = client.put(
        f"/api/attorneys/{attorney['id']}",
        json={"password": "BrandNewPass9!", "city": "Albuquerque"},
        headers=admin.headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["city"] == "Albuquerque"
    # Fields not in the request keep their values
    assert body["firm"] == "Goodman & Associates"
    assert login(client, "saul@example.com", "CounselPass1!").status_code == 401
    assert login(client, "saul@example.com", "BrandNewPass9!").status_code == 200


def test_update_name_and_email_go_to_user(client, admin, attorney):
    response = client.put(
        f"/api/attorneys?id={attorney['id']}",
        json={"name": "James McGill", "email": "jimmy@example.com"},
        headers=admin.headers,
    )
    assert response.status_code == 200
    assert response.json()["user"] == {
        "id": attorney["userId"], "name": "James McGill", "email": "jimmy@example.com", "role": "ATTORNEY",
    }


def test_update_email_conflict(client, admin, attorney, staff):
    response = client.put(f"/api/attorneys/{attorney['id']}", json={"email": staff.email}, headers=admin.headers)
    assert response.status_code == 409


def test_owner_may_update_but_others_may_not(client, admin, attorney, database):
    token = login(client, "saul@example.com", "CounselPass1!").json()["accessToken"]
    own = client.put(f"/api/attorneys/{attorney['id']}", json={"notes": "Prefers email"}, headers=auth_headers(token))
    assert own.status_code == 200
    assert own.json()["notes"] == "Prefers email"

    other = make_user(database, "other.attorney@example.com", models.UserRole.ATTORNEY)
    denied = client.put(f"/api/attorneys/{attorney['id']}", json={"notes": "x"}, headers=other.headers)
    assert denied.status_code == 403
    assert client.delete(f"/api/attorneys/{attorney['id']}", headers=other.headers).status_code == 403


def test_unknown_attorney_is_not_found_before_forbidden(client, staff):
    response = client.put("/api/attorneys/doesnotexist", json={"notes": "x"}, headers=staff.headers)
    assert response.status_code == 404


def test_case_manager_crud_respects_owner(client, admin, attorney, staff):
    created = client.post(
        "/api/case-managers",
        json={"attorneyId": attorney["id"], "name": "Huell", "email": "huell@example.com", "phone": "5055550102"},
        headers=admin.headers,
    )
    assert created.status_code == 200
    manager_id = created.json()["id"]

    assert client.put(f"/api/case-managers/{manager_id}", json={"phoneExt": "7"}, headers=staff.headers).status_code == 403
    updated = client.put(f"/api/case-managers/{manager_id}", json={"phoneExt": "7"}, headers=admin.headers)
    assert updated.json()["phoneExt"] == "7"

    filtered = client.get(f"/api/case-managers?attorneyId={attorney['id']}", headers=admin.headers).json()
    assert {cm["name"] for cm in filtered} == {"Francesca", "Huell"}

    missing = client.post(
        "/api/case-managers",
        json={"attorneyId": "nope", "name": "Huell", "email": "huell@example.com", "phone": "5055550102"},
        headers=admin.headers,
    )
    assert missing.status_code == 400
    assert missing.json()["errors"][0]["field"] == "attorneyId"

    assert client.delete(f"/api/case-managers/{manager_id}", headers=admin.headers).status_code == 200


def test_delete_attorney_cascades(client, admin, attorney, patient_payload, database):
    patient = client.post(
        "/api/patients", json=patient_payload(attorneyId=attorney["id"]), headers=admin.headers,
    ).json()
    assert patient["attorney"]["user"]["name"] == "Saul Goodman"

    response = client.delete(f"/api/attorneys/{attorney['id']}", headers=admin.headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Attorney deleted successfully"}

    assert client.get(f"/api/attorneys/{attorney['id']}", headers=admin.headers).status_code == 404
    assert client.get("/api/case-managers", headers=admin.headers).json() == []
    reloaded = client.get(f"/api/patients/{patient['id']}", headers=admin.headers).json()
    assert reloaded["attorneyId"] is None
    assert reloaded["attorney"] is None

    db = database.session()
    try:
        assert crud.get_user_by_email(db, "saul@example.com") is None
    finally:
        db.close()


def test_attorney_can_delete_own_profile(client, attorney):
    token = login(client, "saul@example.com", "CounselPass1!").json()["accessToken"]
    response = client.delete(f"/api/attorneys/{attorney['id']}", headers=auth_headers(token))
    assert response.status_code == 200
    # The token now belongs to a deleted user
    assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
