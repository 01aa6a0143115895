"""
tests/conftest.py

Test fixtures: a fresh SQLite schema per test and a stubbed provider API
"""

import json
import os

import httpx
import pytest

# Set testing environment before imports
os.environ["FASTAPI_CONFIG"] = "testing"


class ProviderStub:
    """Plays ImgBB and Kie.ai behind an httpx.MockTransport"""

    def __init__(self):
        self.requests = []
        self.upload_status = 200
        self.create_status = 200
        self.create_body = None
        self.record_status = 200
        self.record = {"code": 200, "data": {"state": "waiting"}}
        self.next_task_id = None
        self._created = 0

    # ---- scripted provider states ----

    def set_state(self, state):
        self.record = {"code": 200, "data": {"state": state}}

    def set_success(self, url="https://x/y.png"):
        self.record = {
            "code": 200,
            "data": {
                "state": "success",
                "resultJson": json.dumps({"resultUrls": [url]}),
            },
        }

    def set_failed(self, message="Content policy violation"):
        self.record = {
            "code": 200,
            "data": {"state": "fail", "failMsg": message},
        }

    # ---- transport ----

    def calls(self, path):
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/1/upload":
            if self.upload_status != 200:
                return httpx.Response(
                    self.upload_status, json={"error": "upload rejected"}
                )
            n = len(self.calls(path))
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {"url": f"https://i.ibb.co/img{n}.png"},
                },
            )

        if path == "/api/v1/jobs/createTask":
            if self.create_status != 200:
                return httpx.Response(
                    self.create_status, json={"msg": "upstream rejected"}
                )
            if self.create_body is not None:
                return httpx.Response(200, json=self.create_body)
            self._created += 1
            task_id = self.next_task_id or f"kie-task-{self._created}"
            self.next_task_id = None
            return httpx.Response(
                200, json={"code": 200, "data": {"taskId": task_id}}
            )

        if path == "/api/v1/jobs/recordInfo":
            return httpx.Response(self.record_status, json=self.record)

        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def providers():
    return ProviderStub()


@pytest.fixture
def db_session():
    """Fresh schema and session for every test"""
    from nanoedit.database import Base, SessionLocal, engine
    import nanoedit.auth.models  # noqa
    import nanoedit.credits.models  # noqa
    import nanoedit.tasks.models  # noqa

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db_session):
    """Signed-up user holding the signup bonus"""
    from nanoedit.auth.service import UserService

    return UserService(db_session).save_user(
        email="editor@example.com", nickname="Editor"
    )


@pytest.fixture
def auth_headers(user):
    from nanoedit.auth.utils import create_session_token

    token = create_session_token(user.uuid, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(db_session, providers):
    """Full app wired to the test session and the provider stub"""
    from nanoedit import create_app
    from nanoedit.database import get_db_session
    from nanoedit.http_client import get_http_client
    from nanoedit.middleware.rate_limiter import limiter

    limiter.reset()
    app = create_app()
    http = providers.client()

    def get_test_db_session():
        return db_session

    app.dependency_overrides[get_db_session] = get_test_db_session
    app.dependency_overrides[get_http_client] = lambda: http

    return app


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def set_balance(db_session):
    """Overwrite a user's balance directly"""
    from sqlalchemy import update
    from nanoedit.credits.models import CreditBalance

    def _set(user_uuid, balance):
        db_session.execute(
            update(CreditBalance)
            .where(CreditBalance.user_uuid == user_uuid)
            .values(balance=balance)
        )
        db_session.commit()

    return _set
