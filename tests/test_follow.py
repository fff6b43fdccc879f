from socialapp import models


def test_follow_user(authorized_client, session, test_user, test_user2):
    res = authorized_client.post(f"/follow/{test_user2.id}")
    assert res.status_code == 201
    assert res.json()["message"] == "Successfully followed user"

    note = (
        session.query(models.Notification)
        .filter(
            models.Notification.user_id == test_user2.id,
            models.Notification.notification_type == int(models.NotificationType.FOLLOW),
        )
        .first()
    )
    assert note is not None
    assert note.from_user_id == test_user.id
    assert note.content == "Alice Smith started following you"


def test_follow_self(authorized_client, test_user):
    res = authorized_client.post(f"/follow/{test_user.id}")
    assert res.status_code == 400
    assert res.json()["detail"] == "You cannot follow yourself"


def test_follow_twice(authorized_client, test_user2):
    authorized_client.post(f"/follow/{test_user2.id}")
    res = authorized_client.post(f"/follow/{test_user2.id}")
    assert res.status_code == 400
    assert res.json()["detail"] == "You already follow this user"


def test_follow_missing_user(authorized_client):
    res = authorized_client.post("/follow/99999")
    assert res.status_code == 404


def test_follow_blocked_pair(authorized_client, session, test_user, test_user2):
    session.add(models.UserBlock(blocker_id=test_user2.id, blocked_user_id=test_user.id))
    session.commit()
    res = authorized_client.post(f"/follow/{test_user2.id}")
    assert res.status_code == 403


def test_unfollow(authorized_client, test_user2):
    authorized_client.post(f"/follow/{test_user2.id}")
    assert authorized_client.delete(f"/follow/{test_user2.id}").status_code == 204
    res = authorized_client.delete(f"/follow/{test_user2.id}")
    assert res.status_code == 404
    assert res.json()["detail"] == "You do not follow this user"


def test_followers_and_following_lists(authorized_client, test_user, test_user2):
    authorized_client.post(f"/follow/{test_user2.id}")

    followers = authorized_client.get(f"/follow/{test_user2.id}/followers")
    assert followers.status_code == 200
    body = followers.json()
    assert body["total_count"] == 1
    assert body["users"][0]["user"]["id"] == test_user.id
    assert body["users"][0]["followed_at"]

    following = authorized_client.get(f"/follow/{test_user.id}/following")
    assert [u["user"]["id"] for u in following.json()["users"]] == [test_user2.id]


def test_follow_status_and_friends(authorized_client, friends, test_user2, test_user3):
    status = authorized_client.get(f"/follow/{test_user2.id}/status").json()
    assert status == {"is_following": True, "is_followed_by": True, "is_friend": True}

    one_way = authorized_client.get(f"/follow/{test_user3.id}/status").json()
    assert one_way["is_friend"] is False

    res = authorized_client.get("/follow/friends")
    assert res.status_code == 200
    assert [u["id"] for u in res.json()] == [test_user2.id]
