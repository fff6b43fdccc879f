import pytest
from jose import jwt

from socialapp import models, oauth2
from socialapp.core.config import settings
from socialapp.core.exceptions import InvalidTokenException


def test_register_user(client):
    res = client.post(
        "/auth/register",
        json={
            "username": "newcomer",
            "email": "newcomer@example.com",
            "password": "password123",
            "first_name": "New",
        },
    )
    assert res.status_code == 201
    body = res.json()
    assert body["username"] == "newcomer"
    assert body["email"] == "newcomer@example.com"
    assert body["role"] == "user"
    assert "password" not in body
    assert "hashed_password" not in body


def test_register_sends_welcome_notification(client, session, test_user):
    notes = (
        session.query(models.Notification)
        .filter(models.Notification.user_id == test_user.id)
        .all()
    )
    assert len(notes) == 1
    assert notes[0].notification_type == models.NotificationType.WELCOME


@pytest.mark.parametrize(
    "field, value",
    [("username", "alice"), ("email", "alice@example.com")],
)
def test_register_duplicate_conflicts(client, test_user, field, value):
    payload = {"username": "someone", "email": "someone@example.com", "password": "password123"}
    payload[field] = value
    res = client.post("/auth/register", json=payload)
    assert res.status_code == 409
    body = res.json()
    assert body["success"] is False
    assert body["error"]["code"] == "resource_already_exists"
    assert body["error"]["details"]["field"] == field


@pytest.mark.parametrize(
    "payload",
    [
        {"username": "ab", "email": "short@example.com", "password": "password123"},
        {"username": "valid_name", "email": "not-an-email", "password": "password123"},
        {"username": "valid_name", "email": "ok@example.com", "password": "123"},
        {"username": "bad name!", "email": "ok@example.com", "password": "password123"},
    ],
)
def test_register_validation_errors(client, payload):
    res = client.post("/auth/register", json=payload)
    assert res.status_code == 422
    assert res.json()["detail"]


@pytest.mark.parametrize("identifier", ["alice", "alice@example.com"])
def test_login_with_username_or_email(client, test_user, identifier):
    res = client.post(
        "/auth/login", data={"username": identifier, "password": test_user.password}
    )
    assert res.status_code == 200
    body = res.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == test_user.id
    payload = jwt.decode(
        body["access_token"], settings.secret_key, algorithms=[settings.algorithm]
    )
    assert payload["user_id"] == test_user.id


@pytest.mark.parametrize(
    "username, password",
    [("alice", "wrongpassword"), ("nobody", "password123")],
)
def test_login_invalid_credentials(client, test_user, username, password):
    res = client.post("/auth/login", data={"username": username, "password": password})
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "Invalid Credentials"


def test_login_deleted_account_rejected(client, session, test_user):
    session.query(models.User).filter(models.User.id == test_user.id).update(
        {"is_deleted": True}
    )
    session.commit()
    res = client.post(
        "/auth/login", data={"username": "alice", "password": test_user.password}
    )
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "account_deleted"


def test_read_me(authorized_client, test_user):
    res = authorized_client.get("/auth/me")
    assert res.status_code == 200
    assert res.json()["username"] == test_user.username


def test_me_requires_token(client):
    res = client.get("/auth/me")
    assert res.status_code == 401


def test_me_rejects_garbage_token(client):
    client.headers.update({"Authorization": "Bearer not-a-token"})
    res = client.get("/auth/me")
    assert res.status_code == 401


def test_token_of_deleted_user_rejected(authorized_client, session, test_user):
    session.query(models.User).filter(models.User.id == test_user.id).update(
        {"is_deleted": True}
    )
    session.commit()
    res = authorized_client.get("/auth/me")
    assert res.status_code == 401


def test_user_from_token_raises_invalid_token(session, test_user, token):
    assert oauth2.get_user_from_token(token, session).id == test_user.id

    with pytest.raises(InvalidTokenException):
        oauth2.get_user_from_token("not-a-token", session)

    session.query(models.User).filter(models.User.id == test_user.id).update(
        {"is_deleted": True}
    )
    session.commit()
    with pytest.raises(InvalidTokenException) as exc:
        oauth2.get_user_from_token(token, session)
    assert exc.value.status_code == 401
    assert exc.value.error_code == "invalid_token"


def test_change_password(authorized_client, client, test_user):
    res = authorized_client.post(
        "/auth/change-password",
        json={"current_password": test_user.password, "new_password": "newsecret1"},
    )
    assert res.status_code == 200
    assert res.json()["message"] == "Password changed successfully"

    old = client.post("/auth/login", data={"username": "alice", "password": test_user.password})
    assert old.status_code == 403
    new = client.post("/auth/login", data={"username": "alice", "password": "newsecret1"})
    assert new.status_code == 200


def test_change_password_wrong_current(authorized_client):
    res = authorized_client.post(
        "/auth/change-password",
        json={"current_password": "not-it", "new_password": "newsecret1"},
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Current password is incorrect"
