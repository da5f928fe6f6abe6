# tests/test_auth.py
from datetime import timedelta

from app.security import create_access_token, verify_password, get_password_hash

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, auth_headers


def test_health_needs_no_credentials(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "version": "1.0.0"}


def test_missing_token_is_unauthorized(client):
    response = client.get("/api/patients")
    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}
    assert response.headers["www-authenticate"] == "Bearer"


def test_tampered_token_is_unauthorized(client, staff):
    response = client.get("/api/patients", headers=auth_headers(staff.token + "x"))
    assert response.status_code == 401


def test_expired_token_is_unauthorized(client, staff):
    token = create_access_token({"sub": staff.id, "role": "STAFF"}, expires_delta=timedelta(seconds=-5))
    response = client.get("/api/patients", headers=auth_headers(token))
    assert response.status_code == 401


def test_token_for_unknown_user_is_unauthorized(client):
    token = create_access_token({"sub": "0" * 32, "role": "ADMIN"})
    response = client.get("/api/patients", headers=auth_headers(token))
    assert response.status_code == 401


def test_login_returns_token_and_sets_cookie(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["expiresIn"] == 480 * 60
    assert body["user"]["email"] == ADMIN_EMAIL
    assert body["user"]["role"] == "ADMIN"
    assert "password" not in body["user"]
    assert client.cookies.get("token") == body["accessToken"]

    # The cookie alone authenticates later requests
    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == ADMIN_EMAIL

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401


def test_login_with_wrong_password(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["message"] == "Incorrect email or password"


def test_oauth2_token_form(client, staff):
    response = client.post("/api/auth/token", data={"username": staff.email, "password": staff.password})
    assert response.status_code == 200
    token = response.json()["accessToken"]
    client.cookies.clear()
    me = client.get("/api/auth/me", headers=auth_headers(token))
    assert me.json()["role"] == "STAFF"


def test_users_endpoint_is_admin_only(client, admin, staff):
    assert client.get("/api/users", headers=staff.headers).status_code == 403
    response = client.get("/api/users", headers=admin.headers)
    assert response.status_code == 200
    emails = {user["email"] for user in response.json()}
    assert {ADMIN_EMAIL, staff.email} <= emails


def test_forbidden_is_distinct_from_unauthorized(client, staff, reference_data):
    response = client.delete(f"/api/payers/{reference_data.payer_id}", headers=staff.headers)
    assert response.status_code == 403
    assert "Access denied" in response.json()["message"]


def test_admin_manages_users(client, admin):
    created = client.post(
        "/api/users",
        json={"email": "new.staff@example.com", "name": "New Staff", "role": "STAFF", "password": "Password123!"},
        headers=admin.headers,
    )
    assert created.status_code == 200
    user_id = created.json()["id"]

    duplicate = client.post(
        "/api/users", json={"email": "new.staff@example.com", "name": "Again"}, headers=admin.headers,
    )
    assert duplicate.status_code == 409

    updated = client.put(f"/api/users?id={user_id}", json={"isActive": False}, headers=admin.headers)
    assert updated.status_code == 200
    assert updated.json()["isActive"] is False

    login = client.post("/api/auth/login", json={"email": "new.staff@example.com", "password": "Password123!"})
    assert login.status_code == 401

    assert client.delete(f"/api/users/{user_id}", headers=admin.headers).json() == {"message": "User deleted successfully"}
    assert client.get(f"/api/users/{user_id}", headers=admin.headers).status_code == 404


def test_admin_cannot_delete_self(client, admin):
    response = client.delete(f"/api/users/{admin.id}", headers=admin.headers)
    assert response.status_code == 400


def test_empty_hash_never_verifies():
    assert verify_password("anything", "") is False
    assert verify_password("secret-pass", get_password_hash("secret-pass")) is True
    assert verify_password("other", get_password_hash("secret-pass")) is False
