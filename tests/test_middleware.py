"""
tests/test_middleware.py

Request IDs, error envelopes, rate limiting, health checks and the
stale task reaper
"""

import json
import logging
from datetime import datetime, timedelta

from nanoedit.credits.service import CreditService
from nanoedit.logging import JSONFormatter, RequestLogger
from nanoedit.tasks.models import TaskType
from nanoedit.tasks.service import TaskService


def test_request_id_header(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "nanoedit-api"}
    assert response.headers["X-Request-ID"]


def test_request_id_is_propagated(client):
    response = client.get("/live", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"


def test_readiness_reports_checks(client):
    response = client.get("/ready")

    body = response.json()
    assert response.status_code in (200, 503)
    assert body["checks"]["database"] is True
    assert "redis" in body["checks"]
    assert body["providers"] == {"kie": True, "imgbb": True}


def test_unhandled_error_becomes_500_envelope(app):
    from fastapi.testclient import TestClient

    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    response = TestClient(app).get("/boom")

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "INTERNAL_ERROR"
    assert body["request_id"] == response.headers["X-Request-ID"]


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_generate_endpoint_is_rate_limited(client, monkeypatch):
    from nanoedit.middleware import rate_limiter

    monkeypatch.setitem(
        rate_limiter.LIMITS, ("POST", "/api/generate-image"), (2, 60)
    )
    body = {"images": ["aGVsbG8="], "prompt": "x"}

    codes = [
        client.post("/api/generate-image", json=body).status_code
        for _ in range(3)
    ]

    assert codes == [401, 401, 429]


def test_status_polling_is_not_rate_limited(client, monkeypatch):
    from nanoedit.middleware import rate_limiter

    monkeypatch.setitem(
        rate_limiter.LIMITS, ("POST", "/api/generate-image"), (1, 60)
    )

    codes = {
        client.get(
            "/api/generate-image/task-status", params={"taskId": "ext-1"}
        ).status_code
        for _ in range(5)
    }

    assert codes == {200}


def test_expire_stale_tasks_job(db_session, user):
    from nanoedit.tasks.tasks import expire_stale_tasks

    tasks = TaskService(db_session)
    credits = CreditService(db_session)
    stale = tasks.create_task_record(
        user.uuid,
        TaskType.AIImageEdit,
        credits_consumed=2,
        credits_remaining=8,
        external_task_id="stale",
    )
    credits.create_usage_record(stale)
    fresh = tasks.create_task_record(
        user.uuid,
        TaskType.AIImageEdit,
        credits_consumed=2,
        credits_remaining=6,
        external_task_id="fresh",
    )
    stale.created_at = datetime.utcnow() - timedelta(minutes=90)
    db_session.commit()

    result = expire_stale_tasks(minutes=60)

    assert result["expired_count"] == 1
    assert result["task_ids"] == [stale.id]

    db_session.expire_all()
    assert tasks.get_task(stale.id).task_status == "failed"
    assert tasks.get_task(stale.id).error_message == "Task timed out"
    assert tasks.get_task(fresh.id).task_status == "pending"
    record = credits.get_usage_record(stale.id)
    assert record.task_status == "failed"
    assert record.completed_at is not None


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_bound_logger_tags_lines_with_task_ids():
    capture = _Capture()
    log_ = logging.getLogger("nanoedit.tests.bound")
    log_.addHandler(capture)
    log_.setLevel(logging.INFO)

    log = RequestLogger(log_, "req-1", "user-1").bind(
        task_id="ai_image_edit_1", external_task_id="abc123"
    )
    log.info("Image editing task created", images=2)

    line = json.loads(JSONFormatter().format(capture.records[0]))
    assert line["message"] == "Image editing task created"
    assert line["request_id"] == "req-1"
    assert line["user_id"] == "user-1"
    assert line["task_id"] == "ai_image_edit_1"
    assert line["external_task_id"] == "abc123"
    assert line["images"] == 2
