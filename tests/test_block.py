from socialapp import models


def test_block_user_removes_follows(authorized_client, session, friends, test_user, test_user2):
    res = authorized_client.post(
        "/block", json={"blocked_user_id": test_user2.id, "reason": "spam"}
    )
    assert res.status_code == 201
    body = res.json()
    assert body["blocker_id"] == test_user.id
    assert body["blocked_user_id"] == test_user2.id
    assert body["already_blocked"] is False

    edges = session.query(models.UserFollower).count()
    assert edges == 0


def test_block_is_idempotent(authorized_client, session, test_user2):
    authorized_client.post("/block", json={"blocked_user_id": test_user2.id})
    res = authorized_client.post("/block", json={"blocked_user_id": test_user2.id})
    assert res.status_code == 200
    assert res.json()["already_blocked"] is True
    assert session.query(models.UserBlock).count() == 1


def test_block_self(authorized_client, test_user):
    res = authorized_client.post("/block", json={"blocked_user_id": test_user.id})
    assert res.status_code == 400


def test_block_unknown_user(authorized_client):
    res = authorized_client.post("/block", json={"blocked_user_id": 99999})
    assert res.status_code == 404


def test_block_status_both_sides(authorized_client, client_for, test_user, test_user2):
    authorized_client.post("/block", json={"blocked_user_id": test_user2.id, "reason": "rude"})

    mine = authorized_client.get(f"/block/status/{test_user2.id}").json()
    assert mine["is_blocked"] is True
    assert mine["is_blocked_by"] is False
    assert mine["reason"] == "rude"

    theirs = client_for(test_user2).get(f"/block/status/{test_user.id}").json()
    assert theirs["is_blocked"] is False
    assert theirs["is_blocked_by"] is True


def test_list_blocked_users(authorized_client, test_user2, test_user3):
    authorized_client.post("/block", json={"blocked_user_id": test_user2.id})
    authorized_client.post("/block", json={"blocked_user_id": test_user3.id})
    res = authorized_client.get("/block/blocked-users", params={"page_size": 1})
    assert res.status_code == 200
    body = res.json()
    assert body["total_count"] == 2
    assert len(body["blocked_users"]) == 1
    assert body["has_more"] is True


def test_unblock(authorized_client, test_user2):
    authorized_client.post("/block", json={"blocked_user_id": test_user2.id})
    assert authorized_client.delete(f"/block/{test_user2.id}").status_code == 204
    res = authorized_client.delete(f"/block/{test_user2.id}")
    assert res.status_code == 404
    assert res.json()["detail"] == "User is not blocked"


def test_blocked_user_cannot_follow(authorized_client, client_for, test_user, test_user2):
    authorized_client.post("/block", json={"blocked_user_id": test_user2.id})
    res = client_for(test_user2).post(f"/follow/{test_user.id}")
    assert res.status_code == 403
