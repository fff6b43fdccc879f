from datetime import datetime, timedelta, timezone

import pytest

from socialapp import models


@pytest.fixture
def chat(authorized_client, friends, test_user2):
    res = authorized_client.post(f"/simple-chat/conversations/{test_user2.id}")
    assert res.status_code == 200
    return res.json()


def _send(client, conversation_id, content="hey", **extra):
    return client.post(
        f"/simple-chat/conversations/{conversation_id}/messages",
        json={"content": content, **extra},
    )


def test_open_requires_friendship(authorized_client, test_user2):
    res = authorized_client.post(f"/simple-chat/conversations/{test_user2.id}")
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "You can only chat with friends"


def test_open_errors(authorized_client, test_user):
    assert authorized_client.post(f"/simple-chat/conversations/{test_user.id}").status_code == 400
    assert authorized_client.post("/simple-chat/conversations/99999").status_code == 404


def test_open_is_idempotent(authorized_client, client_for, chat, test_user, test_user2):
    assert chat["other_user"]["id"] == test_user2.id
    assert chat["message_count"] == 0
    again = client_for(test_user2).post(f"/simple-chat/conversations/{test_user.id}").json()
    assert again["id"] == chat["id"]


def test_send_updates_conversation(authorized_client, client_for, chat, test_user2):
    res = _send(authorized_client, chat["id"], "  hi bob  ")
    assert res.status_code == 201
    assert res.json()["content"] == "hi bob"
    assert res.json()["sender"]["username"] == "alice"

    listed = client_for(test_user2).get("/simple-chat/conversations").json()
    assert listed[0]["last_message"] == "hi bob"
    assert listed[0]["message_count"] == 1
    assert listed[0]["unread_count"] == 1


def test_media_message_preview(authorized_client, chat):
    res = authorized_client.post(
        f"/simple-chat/conversations/{chat['id']}/messages",
        json={
            "message_type": "image",
            "media_url": "https://cdn.example.com/cat.png",
            "media_file_name": "cat.png",
        },
    )
    assert res.status_code == 201
    listed = authorized_client.get("/simple-chat/conversations").json()
    assert listed[0]["last_message"] == "📁 cat.png"


def test_long_message_preview_is_truncated(authorized_client, chat):
    _send(authorized_client, chat["id"], "x" * 200)
    preview = authorized_client.get("/simple-chat/conversations").json()[0]["last_message"]
    assert len(preview) < 200
    assert preview.endswith("...")


def test_empty_message_rejected(authorized_client, chat):
    res = authorized_client.post(
        f"/simple-chat/conversations/{chat['id']}/messages", json={"content": ""}
    )
    assert res.status_code == 422


def test_sending_requires_continued_friendship(authorized_client, session, chat, test_user, test_user2):
    session.query(models.UserFollower).filter(
        models.UserFollower.follower_id == test_user2.id
    ).delete()
    session.commit()
    res = _send(authorized_client, chat["id"])
    assert res.status_code == 403


def test_outsider_gets_404(client_for, chat, test_user3):
    res = client_for(test_user3).get(f"/simple-chat/conversations/{chat['id']}/messages")
    assert res.status_code == 404


def test_message_paging(authorized_client, chat):
    for i in range(3):
        _send(authorized_client, chat["id"], f"m{i}")
    page = authorized_client.get(
        f"/simple-chat/conversations/{chat['id']}/messages", params={"page_size": 2}
    ).json()
    assert [m["content"] for m in page["messages"]] == ["m1", "m2"]
    assert page["total_count"] == 3
    assert page["has_more"] is True


def test_mark_read_clears_unread(authorized_client, client_for, chat, test_user2):
    _send(authorized_client, chat["id"])
    bob = client_for(test_user2)
    res = bob.put(f"/simple-chat/conversations/{chat['id']}/read")
    assert res.status_code == 200
    assert res.json()["conversation_id"] == chat["id"]
    assert bob.get("/simple-chat/conversations").json()[0]["unread_count"] == 0


def test_hide_conversation_until_next_message(authorized_client, client_for, chat, test_user2):
    bob = client_for(test_user2)
    assert bob.delete(f"/simple-chat/conversations/{chat['id']}").status_code == 204
    assert bob.get("/simple-chat/conversations").json() == []
    assert len(authorized_client.get("/simple-chat/conversations").json()) == 1

    _send(authorized_client, chat["id"])
    assert len(bob.get("/simple-chat/conversations").json()) == 1


def test_edit_and_delete_own_messages(authorized_client, client_for, chat, test_user2):
    message = _send(authorized_client, chat["id"], "draft").json()
    bob = client_for(test_user2)

    assert bob.put(f"/simple-chat/messages/{message['id']}", json={"content": "x"}).status_code == 403
    edited = authorized_client.put(
        f"/simple-chat/messages/{message['id']}", json={"content": "final"}
    )
    assert edited.json()["content"] == "final"
    assert edited.json()["edited_at"] is not None

    assert bob.delete(f"/simple-chat/messages/{message['id']}").status_code == 403
    assert authorized_client.delete(f"/simple-chat/messages/{message['id']}").status_code == 204
    assert authorized_client.delete(f"/simple-chat/messages/{message['id']}").status_code == 404


def test_online_uses_recent_activity(authorized_client, client_for, session, chat, test_user2):
    stale = datetime.now(timezone.utc) - timedelta(hours=1)
    session.query(models.User).filter(models.User.id == test_user2.id).update(
        {"last_active": stale}
    )
    session.commit()
    listed = authorized_client.get("/simple-chat/conversations").json()
    assert listed[0]["is_online"] is False

    client_for(test_user2).get("/auth/me")
    listed = authorized_client.get("/simple-chat/conversations").json()
    assert listed[0]["is_online"] is True
