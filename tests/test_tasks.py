# tests/test_tasks.py
import pytest


@pytest.fixture
def task(client, staff):
    response = client.post(
        "/api/tasks",
        json={"title": "Call attorney", "priority": "HIGH", "dueDate": "2025-07-01T15:00:00Z", "assignedToId": staff.id},
        headers=staff.headers,
    )
    assert response.status_code == 200
    return response.json()


def test_create_task_defaults_and_assignee(client, task, staff):
    assert task["status"] == "PENDING"
    assert task["priority"] == "HIGH"
    assert task["assignedTo"] == {"id": staff.id, "name": "Staff", "email": staff.email}
    assert task["dueDate"].startswith("2025-07-01T15:00:00")


def test_title_is_required(client, staff):
    response = client.post("/api/tasks", json={"description": "no title"}, headers=staff.headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "title"


def test_unknown_assignee_is_rejected(client, staff):
    response = client.post("/api/tasks", json={"title": "X", "assignedToId": "ghost"}, headers=staff.headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "assignedToId"


def test_invalid_enum_is_rejected(client, staff):
    response = client.post("/api/tasks", json={"title": "X", "priority": "SOMEDAY"}, headers=staff.headers)
    assert response.status_code == 400


def test_assignee_and_admin_may_update(client, task, staff, other_staff, admin):
    denied = client.put(f"/api/tasks/{task['id']}", json={"status": "IN_PROGRESS"}, headers=other_staff.headers)
    assert denied.status_code == 403

    own = client.put(f"/api/tasks/{task['id']}", json={"status": "IN_PROGRESS"}, headers=staff.headers)
    assert own.status_code == 200
    assert own.json()["status"] == "IN_PROGRESS"
    assert own.json()["title"] == "Call attorney"

    reassigned = client.put(
        f"/api/tasks?id={task['id']}", json={"assignedToId": other_staff.id}, headers=admin.headers,
    )
    assert reassigned.json()["assignedTo"]["id"] == other_staff.id


def test_list_filters_newest_first(client, task, staff, other_staff):
    client.post("/api/tasks", json={"title": "Second", "status": "COMPLETED"}, headers=other_staff.headers)
    titles = [t["title"] for t in client.get("/api/tasks", headers=staff.headers).json()]
    assert titles == ["Second", "Call attorney"]
    completed = client.get("/api/tasks?status=COMPLETED", headers=staff.headers).json()
    assert [t["title"] for t in completed] == ["Second"]
    mine = client.get(f"/api/tasks?assignedToId={staff.id}", headers=staff.headers).json()
    assert [t["id"] for t in mine] == [task["id"]]


def test_delete_is_admin_only(client, task, staff, admin):
    assert client.delete(f"/api/tasks/{task['id']}", headers=staff.headers).status_code == 403
    assert client.delete(f"/api/tasks/{task['id']}", headers=admin.headers).json() == {"message": "Task deleted successfully"}
    assert client.get(f"/api/tasks/{task['id']}", headers=admin.headers).status_code == 404


def test_deleting_assignee_unassigns_task(client, task, staff, admin):
    assert client.delete(f"/api/users/{staff.id}", headers=admin.headers).status_code == 200
    reloaded = client.get(f"/api/tasks/{task['id']}", headers=admin.headers).json()
    assert reloaded["assignedToId"] is None
    assert reloaded["assignedTo"] is None
