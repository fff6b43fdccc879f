import pytest

from socialapp import models


def _toggle(client, entity_id, reaction_type="like", entity_type="post"):
    return client.post(
        "/reactions",
        json={"entity_type": entity_type, "entity_id": entity_id, "reaction_type": reaction_type},
    )


def test_add_update_remove_cycle(client_for, session, test_post, test_user, test_user2):
    bob = client_for(test_user2)

    added = _toggle(bob, test_post.id)
    assert added.status_code == 200
    assert added.json()["action"] == "added"
    assert added.json()["counts"] == {"like": 1}
    assert added.json()["current_user_reaction"] == "like"

    updated = _toggle(bob, test_post.id, "love")
    assert updated.json()["action"] == "updated"
    assert updated.json()["counts"] == {"love": 1}
    assert updated.json()["total"] == 1

    removed = _toggle(bob, test_post.id, "love")
    body = removed.json()
    assert body["action"] == "removed"
    assert body["reaction_type"] is None
    assert body["total"] == 0
    assert session.query(models.Reaction).count() == 0


def test_like_notifies_owner_and_unlike_clears_it(client_for, session, test_post, test_user, test_user2):
    bob = client_for(test_user2)
    _toggle(bob, test_post.id)
    likes = session.query(models.Notification).filter(
        models.Notification.notification_type == int(models.NotificationType.LIKE)
    )
    assert likes.count() == 1
    assert likes.first().user_id == test_user.id

    _toggle(bob, test_post.id)
    assert likes.count() == 0


def test_comment_reaction(client_for, session, test_comment, test_user2):
    res = _toggle(client_for(test_user2), test_comment.id, "haha", entity_type="comment")
    assert res.status_code == 200
    assert res.json()["counts"] == {"haha": 1}
    note = (
        session.query(models.Notification)
        .filter(
            models.Notification.notification_type
            == int(models.NotificationType.COMMENT_LIKE)
        )
        .one()
    )
    assert note.comment_id == test_comment.id


def test_post_counts_reflect_reactions(authorized_client, client_for, test_post, test_user2, test_user3):
    _toggle(client_for(test_user2), test_post.id, "like")
    _toggle(client_for(test_user3), test_post.id, "wow")
    _toggle(authorized_client, test_post.id, "like")

    post = authorized_client.get(f"/posts/{test_post.id}").json()
    assert post["reactions_count"] == 3
    assert post["reaction_counts"] == {"like": 2, "wow": 1}
    assert post["current_user_reaction"] == "like"
    assert post["is_liked_by_current_user"] is True


def test_summary_and_users(authorized_client, client_for, test_post, test_user2, test_user3):
    _toggle(client_for(test_user2), test_post.id, "sad")
    _toggle(client_for(test_user3), test_post.id, "angry")

    summary = authorized_client.get(f"/reactions/post/{test_post.id}").json()
    assert summary == {
        "total": 2,
        "counts": {"sad": 1, "angry": 1},
        "current_user_reaction": None,
    }

    users = authorized_client.get(f"/reactions/post/{test_post.id}/users").json()
    assert {u["user"]["username"] for u in users} == {"bob", "carol"}

    sad_only = authorized_client.get(
        f"/reactions/post/{test_post.id}/users", params={"reaction_type": "sad"}
    ).json()
    assert [u["user"]["username"] for u in sad_only] == ["bob"]


@pytest.mark.parametrize(
    "payload",
    [
        {"entity_type": "page", "entity_id": 1, "reaction_type": "like"},
        {"entity_type": "post", "entity_id": 1, "reaction_type": "meh"},
        {"entity_type": "post", "entity_id": 0, "reaction_type": "like"},
    ],
)
def test_invalid_reaction_payloads(authorized_client, payload):
    res = authorized_client.post("/reactions", json=payload)
    assert res.status_code == 422


def test_reaction_on_missing_post(authorized_client):
    res = _toggle(authorized_client, 99999)
    assert res.status_code == 404


def test_reaction_on_invisible_post(client_for, session, test_user, test_user2):
    hidden = models.Post(content="x", user_id=test_user.id, privacy=models.PostPrivacy.PRIVATE)
    session.add(hidden)
    session.commit()
    res = _toggle(client_for(test_user2), hidden.id)
    assert res.status_code == 404
