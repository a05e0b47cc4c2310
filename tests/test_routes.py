import pytest
from fastapi.testclient import TestClient

from conftest import bearer, rows
from main import app
from syntaxmap.auth import ADMIN, STUDENT, TEACHER
from syntaxmap.database import get_db
from syntaxmap.errors import ServerError


@pytest.fixture
def client(conn):
    app.dependency_overrides[get_db] = lambda: conn
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["database"] == "PostgreSQL"


@pytest.mark.parametrize("headers", [{}, bearer("s1", STUDENT), bearer("g1", 4)])
def test_tense_creation_is_staff_only(client, conn, headers):
    response = client.post("/tense", json={"tense_name": "Past Simple"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["success"] is False
    assert conn.executed == []


def test_teacher_creates_tense(client, conn):
    conn.script(rows(), rows({"id": "t1", "tense_name": "Past Simple"}))
    response = client.post("/tense", json={"tense_name": "Past Simple"}, headers=bearer("t9", TEACHER))
    assert response.status_code == 201
    body = response.json()
    assert body["tense_id"] == "t1"
    assert body["tense"]["examples"] == []


def test_duplicate_tense_name_is_409(client, conn):
    conn.script(rows({"id": "t1", "tense_name": "Past Simple"}))
    response = client.post("/tense", json={"tense_name": "Past Simple"}, headers=bearer("t9", TEACHER))
    assert response.status_code == 409
    assert response.json()["existingTenseId"] == "t1"


def test_unknown_tense_renders_error_body(client, conn):
    response = client.get("/tense/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": True, "message": "Tense not found"}


def test_guest_tense_list_is_trimmed(client, conn):
    conn.script(
        rows({"id": "t1", "tense_name": "Past Simple", "usage_notes": "notes"}),
        rows(*[{"id": f"e{i}", "example_text": f"s{i}", "tense_id": "t1", "teacher_reviewed": True}
               for i in range(4)]),
    )
    response = client.get("/tense")
    assert response.status_code == 200
    [tense] = response.json()["tenses"]
    assert "usage_notes" not in tense
    assert len(tense["examples"]["affirmative"]) == 2


def test_own_progress_requires_authentication(client):
    response = client.get("/progress")
    assert response.status_code == 401


def test_students_cannot_read_other_assessments(client, conn):
    response = client.get("/progress/assessment/s2", headers=bearer("s1", STUDENT))
    assert response.status_code == 403
    assert conn.executed == []


def test_analytics_is_admin_only(client):
    response = client.get("/admin/progress/analytics", headers=bearer("t9", TEACHER))
    assert response.status_code == 403


def test_analytics_falls_back_to_mock(client, conn):
    conn.script(ServerError("down"))
    response = client.get("/admin/progress/analytics", headers=bearer("a1", ADMIN))
    assert response.status_code == 200
    assert response.json()["analytics"]["data_source"] == "mock"


def test_login_with_unknown_email(client, conn):
    response = client.post("/user/login", json={"user_email_address": "x@y.io", "user_password": "whatever1"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


def test_students_list_is_staff_only(client):
    response = client.get("/user/students", headers=bearer("s1", STUDENT))
    assert response.status_code == 403


@pytest.mark.parametrize("path", ["/dashboard/admin/overview", "/dashboard/admin/tense-usage"])
def test_admin_reports_are_admin_only(client, path):
    assert client.get(path, headers=bearer("t9", TEACHER)).status_code == 403


def test_admin_report_range_is_validated(client, conn):
    response = client.get("/dashboard/admin/user-activity?range=decade", headers=bearer("a1", ADMIN))
    assert response.status_code == 422
    assert conn.executed == []


def test_admin_quiz_completion(client, conn):
    conn.script(ServerError("relation does not exist"))
    response = client.get("/dashboard/admin/quiz-completion?range=year", headers=bearer("a1", ADMIN))
    assert response.status_code == 200
    body = response.json()
    assert len(body["labels"]) == 12
    assert body["data_source"] == "mock"


def test_goals_need_a_login(client):
    assert client.get("/dashboard/goals").status_code == 401


def test_create_goal(client, conn):
    conn.script(rows({"id": "g1", "user_id": "s1", "description": "Past tenses", "type": "tense"}))
    response = client.post("/dashboard/goals", json={"description": "Past tenses", "type": "tense"},
                           headers=bearer("s1", STUDENT))
    assert response.status_code == 201
    assert response.json()["goal"]["id"] == "g1"


def test_missing_goal_is_404(client, conn):
    response = client.delete("/dashboard/goals/g9", headers=bearer("s1", STUDENT))
    assert response.status_code == 404
    assert response.json()["message"] == "Goal not found"
