import pytest

from socialapp import models, schemas
from socialapp.core.exceptions import ResourceAlreadyExistsException
from socialapp.modules.users import UserService


def test_get_profile_counts_and_flags(authorized_client, session, test_user, test_user2):
    session.add(models.UserFollower(follower_id=test_user.id, following_id=test_user2.id))
    session.add(models.Post(content="bob writes", user_id=test_user2.id))
    session.commit()

    res = authorized_client.get(f"/users/{test_user2.id}")
    assert res.status_code == 200
    body = res.json()
    assert body["username"] == "bob"
    assert body["display_name"] == "Bob"
    assert body["followers_count"] == 1
    assert body["following_count"] == 0
    assert body["posts_count"] == 1
    assert body["is_following"] is True
    assert body["is_followed_by"] is False
    assert body["is_blocked"] is False


def test_get_profile_by_username(authorized_client, test_user2):
    res = authorized_client.get("/users/by-username/bob")
    assert res.status_code == 200
    assert res.json()["id"] == test_user2.id


def test_get_missing_user(authorized_client):
    res = authorized_client.get("/users/99999")
    assert res.status_code == 404
    assert res.json()["detail"] == "User not found"


def test_profile_hidden_across_block(authorized_client, session, test_user, test_user2):
    session.add(models.UserBlock(blocker_id=test_user2.id, blocked_user_id=test_user.id))
    session.commit()
    res = authorized_client.get(f"/users/{test_user2.id}")
    assert res.status_code == 404


def test_deleted_user_profile_is_404(authorized_client, session, test_user2):
    session.query(models.User).filter(models.User.id == test_user2.id).update(
        {"is_deleted": True}
    )
    session.commit()
    res = authorized_client.get(f"/users/{test_user2.id}")
    assert res.status_code == 404


def test_update_me(authorized_client):
    res = authorized_client.put(
        "/users/me", json={"bio": "Hello there", "first_name": "Ally"}
    )
    assert res.status_code == 200
    body = res.json()
    assert body["bio"] == "Hello there"
    assert body["first_name"] == "Ally"


def test_update_me_username_taken(authorized_client, test_user2):
    res = authorized_client.put("/users/me", json={"username": "bob"})
    assert res.status_code == 409
    assert res.json()["error"]["details"]["field"] == "username"


def test_check_username_anonymous(client, test_user):
    taken = client.get("/users/check-username", params={"username": "alice"})
    assert taken.status_code == 200
    assert taken.json() == {"is_available": False}
    free = client.get("/users/check-username", params={"username": "zelda"})
    assert free.json() == {"is_available": True}


def test_check_username_own_name_is_available(authorized_client, test_user2):
    res = authorized_client.get("/users/check-username", params={"username": "alice"})
    assert res.json() == {"is_available": True}
    res = authorized_client.get("/users/check-username", params={"username": "bob"})
    assert res.json() == {"is_available": False}


def test_check_email(client, test_user):
    res = client.get("/users/check-email", params={"email": "alice@example.com"})
    assert res.json() == {"is_available": False}
    res = client.get("/users/check-email", params={"email": "nobody@example.com"})
    assert res.json() == {"is_available": True}


def test_check_username_requires_value(client):
    assert client.get("/users/check-username").status_code == 422


@pytest.fixture
def skip_first_uniqueness_check(monkeypatch):
    """Let the pre-commit check pass once so the database constraint decides."""
    real_check = UserService._ensure_unique
    calls = []

    def check(self, **kwargs):
        calls.append(kwargs)
        if len(calls) > 1:
            real_check(self, **kwargs)

    monkeypatch.setattr(UserService, "_ensure_unique", check)
    return calls


def test_registration_race_names_colliding_email(
    session, test_user, skip_first_uniqueness_check
):
    payload = schemas.UserCreate(
        username="alice2", email="alice@example.com", password="password123"
    )
    with pytest.raises(ResourceAlreadyExistsException) as exc:
        UserService(session).create_user(payload)
    assert exc.value.details == {"field": "email"}


def test_profile_update_race_returns_conflict(
    session, test_user, test_user2, skip_first_uniqueness_check
):
    bob = session.query(models.User).filter(models.User.id == test_user2.id).one()
    with pytest.raises(ResourceAlreadyExistsException) as exc:
        UserService(session).update_profile(bob, schemas.UserUpdate(username="alice"))
    assert exc.value.status_code == 409
    assert exc.value.details == {"field": "username"}
    session.refresh(bob)
    assert bob.username == "bob"


def test_delete_me_soft_deletes(authorized_client, session, test_user):
    res = authorized_client.delete("/users/me")
    assert res.status_code == 204
    user = session.query(models.User).filter(models.User.id == test_user.id).first()
    assert user.is_deleted is True
    assert user.deleted_at is not None
    assert authorized_client.get("/auth/me").status_code == 401


def test_search_users(authorized_client, test_user, test_user2, test_user3):
    res = authorized_client.get("/users/search", params={"q": "o"})
    assert res.status_code == 200
    body = res.json()
    usernames = [u["username"] for u in body["users"]]
    assert usernames == ["bob", "carol"]
    assert body["total_count"] == 2
    assert body["has_next"] is False


def test_search_users_matches_names_case_insensitive(authorized_client, test_user2):
    res = authorized_client.get("/users/search", params={"q": "BOB"})
    assert [u["id"] for u in res.json()["users"]] == [test_user2.id]


def test_search_excludes_blocked_and_deleted(
    authorized_client, session, test_user, test_user2, test_user3
):
    session.add(models.UserBlock(blocker_id=test_user.id, blocked_user_id=test_user2.id))
    session.query(models.User).filter(models.User.id == test_user3.id).update(
        {"is_deleted": True}
    )
    session.commit()
    res = authorized_client.get("/users/search", params={"q": "o"})
    assert res.json()["users"] == []


def test_search_requires_query(authorized_client):
    res = authorized_client.get("/users/search")
    assert res.status_code == 422


def test_friends_search_only_returns_mutual(authorized_client, friends, test_user3):
    res = authorized_client.get("/users/friends/search", params={"q": "o"})
    assert res.status_code == 200
    assert [u["username"] for u in res.json()["users"]] == ["bob"]


def test_friends_search_without_friends(authorized_client, test_user2):
    res = authorized_client.get("/users/friends/search", params={"q": "bob"})
    assert res.json()["users"] == []
    assert res.json()["total_count"] == 0


def test_user_posts_listing(authorized_client, session, test_user2):
    session.add_all(
        [
            models.Post(content="first", user_id=test_user2.id),
            models.Post(content="second", user_id=test_user2.id),
        ]
    )
    session.commit()
    res = authorized_client.get(f"/users/{test_user2.id}/posts")
    assert res.status_code == 200
    assert res.json()["total_count"] == 2
