"""
tests/test_history_views.py

Task history, usage records and balance endpoints
"""

from nanoedit.credits.service import CreditService
from nanoedit.tasks.models import ExternalProvider, TaskType
from nanoedit.tasks.service import TaskService


def _seed_tasks(db_session, user, count):
    tasks = TaskService(db_session)
    credits = CreditService(db_session)
    created = []
    for i in range(count):
        task = tasks.create_task_record(
            user.uuid,
            TaskType.AIImageEdit,
            credits_consumed=2,
            credits_remaining=8,
            external_task_id=f"ext-{i}",
            external_provider=ExternalProvider.KieAI,
        )
        credits.create_usage_record(
            task,
            task_description="AI image editing with Nano Banana",
            task_input={"prompt": f"prompt {i}"},
        )
        created.append(task)
    return created


def test_list_tasks(client, db_session, user, auth_headers):
    _seed_tasks(db_session, user, 3)

    response = client.get("/api/tasks", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["tasks"]) == 3
    assert data["pagination"] == {
        "total": 3,
        "page": 1,
        "limit": 20,
        "pages": 1,
    }
    # provider correlation ids stay server side
    assert "external_task_id" not in data["tasks"][0]


def test_list_tasks_limit_is_clamped(client, db_session, user, auth_headers):
    _seed_tasks(db_session, user, 2)

    response = client.get(
        "/api/tasks", params={"limit": 500}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["limit"] == 100


def test_list_tasks_pages(client, db_session, user, auth_headers):
    _seed_tasks(db_session, user, 5)

    response = client.get(
        "/api/tasks", params={"page": 2, "limit": 2}, headers=auth_headers
    )

    data = response.json()["data"]
    assert len(data["tasks"]) == 2
    assert data["pagination"]["pages"] == 3
    assert data["pagination"]["page"] == 2


def test_list_tasks_filters_by_status(client, db_session, user,
                                      auth_headers):
    tasks = _seed_tasks(db_session, user, 3)
    TaskService(db_session).mark_task_as_failed(tasks[0].id, "boom")

    response = client.get(
        "/api/tasks",
        params={"task_status": "failed"},
        headers=auth_headers,
    )

    data = response.json()["data"]
    assert data["pagination"]["total"] == 1
    assert data["tasks"][0]["id"] == tasks[0].id
    assert data["tasks"][0]["error_message"] == "boom"


def test_list_tasks_only_shows_own(client, db_session, user, auth_headers):
    from nanoedit.auth.service import UserService

    other = UserService(db_session).save_user(email="other@example.com")
    _seed_tasks(db_session, other, 2)

    response = client.get("/api/tasks", headers=auth_headers)

    assert response.json()["data"]["pagination"]["total"] == 0


def test_list_tasks_requires_login(client):
    response = client.get("/api/tasks")

    assert response.status_code == 401
    assert response.json()["code"] == "LOGIN_REQUIRED"


def test_invalid_page_is_400(client, auth_headers):
    response = client.get(
        "/api/tasks", params={"page": 0}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_list_usage_records(client, db_session, user, auth_headers):
    _seed_tasks(db_session, user, 2)

    response = client.get(
        "/api/credit-usage-records",
        params={"limit": 500},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["pagination"]["limit"] == 100
    record = data["records"][0]
    assert record["task_description"] == "AI image editing with Nano Banana"
    assert "task_input" not in record
    assert "external_task_id" not in record


def test_get_credits(client, auth_headers):
    response = client.get("/api/credits", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"left_credits": 10}


def test_get_credits_requires_login(client):
    response = client.get("/api/credits")

    assert response.status_code == 401
