"""
tests/test_auth.py

Session token and API key resolution
"""

from nanoedit.auth.models import ApiKey
from nanoedit.auth.service import UserService
from nanoedit.auth.utils import (
    create_session_token,
    decode_session_token,
    is_api_key,
)
from nanoedit.credits.service import CreditService


def test_session_token_round_trip():
    token = create_session_token("user-uuid", email="a@example.com")

    claims = decode_session_token(token)
    assert claims["sub"] == "user-uuid"
    assert claims["email"] == "a@example.com"


def test_tampered_token_is_rejected():
    token = create_session_token("user-uuid")

    assert decode_session_token(token + "x") is None
    assert decode_session_token("garbage") is None


def test_api_key_prefix():
    assert is_api_key("sk-abc")
    assert not is_api_key("eyJhbGciOi")


def test_api_key_authenticates(client, db_session, user):
    db_session.add(ApiKey(api_key="sk-test-123", user_uuid=user.uuid))
    db_session.commit()

    response = client.get(
        "/api/credits", headers={"Authorization": "Bearer sk-test-123"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["left_credits"] == 10


def test_deleted_api_key_is_rejected(client, db_session, user):
    db_session.add(
        ApiKey(api_key="sk-revoked", user_uuid=user.uuid, status="deleted")
    )
    db_session.commit()

    response = client.get(
        "/api/credits", headers={"Authorization": "Bearer sk-revoked"}
    )

    assert response.status_code == 401


def test_first_session_creates_user_with_bonus(client, db_session):
    """A fresh OAuth session provisions the user and the signup bonus"""
    token = create_session_token(
        "0b7f5a43-3f0e-4a7e-9a49-1c2f0d6b8e11", email="new@example.com"
    )

    response = client.get(
        "/api/credits", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["left_credits"] == 10
    user = UserService(db_session).get_by_email("new@example.com")
    assert user.uuid == "0b7f5a43-3f0e-4a7e-9a49-1c2f0d6b8e11"
    journal = CreditService(db_session).get_transactions(user.uuid)
    assert [t.trans_type for t in journal] == ["new_user"]


def test_session_without_email_for_unknown_user(client):
    token = create_session_token("unknown-uuid")

    response = client.get(
        "/api/credits", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
