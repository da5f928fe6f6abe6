# tests/conftest.py
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_DEFAULT_EMAIL"] = "admin@example.com"
os.environ["ADMIN_DEFAULT_PASSWORD"] = "AdminPass123!"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from app import crud, models, schemas
from app.database import Database
from app.main import create_app
from app.security import create_user_token

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass123!"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_user(database: Database, email: str, role: models.UserRole, password: str = "Password123!"):
    db = database.session()
    try:
        user = crud.create_user(db, schemas.UserCreate(
            email=email, name=email.split("@")[0].title(), role=role, password=password,
        ))
        token = create_user_token(user)
        return SimpleNamespace(id=user.id, email=user.email, password=password, token=token, headers=auth_headers(token))
    finally:
        db.close()


@pytest.fixture
def database():
    db = Database("sqlite://", poolclass=StaticPool)
    yield db
    db.dispose()


@pytest.fixture
def app(database):
    return create_app(database=database)


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan: tables and seed data
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin(client, database):
    db = database.session()
    try:
        user = crud.get_user_by_email(db, ADMIN_EMAIL)
        token = create_user_token(user)
        return SimpleNamespace(id=user.id, email=user.email, password=ADMIN_PASSWORD, token=token, headers=auth_headers(token))
    finally:
        db.close()


@pytest.fixture
def staff(client, database):
    return make_user(database, "staff@example.com", models.UserRole.STAFF)


@pytest.fixture
def other_staff(client, database):
    return make_user(database, "other.staff@example.com", models.UserRole.STAFF)


@pytest.fixture
def reference_data(client, admin):
    """One of each row a procedure needs, created through the API."""
    headers = admin.headers
    payers = client.get("/api/payers", headers=headers).json()
    statuses = client.get("/api/statuses", headers=headers).json()
    exam = client.post("/api/exams", json={"name": "MRI Lumbar", "subExams": [{"name": "With contrast", "price": 250}]}, headers=headers).json()
    facility = client.post("/api/facilities", json={"name": "Downtown Imaging", "city": "Austin"}, headers=headers).json()
    physician = client.post("/api/physicians", json={"prefix": "Dr.", "name": "Jane Reader", "email": "reader@example.com"}, headers=headers).json()
    return SimpleNamespace(
        payer_id=next(p["id"] for p in payers if p["name"] == "Self Pay"),
        status_id=next(s["id"] for s in statuses if s["name"] == "Scheduled"),
        exam_id=exam["id"],
        facility_id=facility["id"],
        physician_id=physician["id"],
    )


@pytest.fixture
def procedure_payload(reference_data):
    def build(**overrides):
        payload = {
            "examId": reference_data.exam_id,
            "scheduleDate": "03/15/2025",
            "scheduleTime": "09:30",
            "facilityId": reference_data.facility_id,
            "physicianId": reference_data.physician_id,
            "statusId": reference_data.status_id,
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def patient_payload(reference_data):
    def build(**overrides):
        payload = {
            "firstName": "John",
            "lastName": "Doe",
            "dateOfBirth": "01/15/1980",
            "phone": "(555) 123-4567",
            "payerId": reference_data.payer_id,
            "statusId": reference_data.status_id,
        }
        payload.update(overrides)
        return payload
    return build
