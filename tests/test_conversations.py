from datetime import datetime, timedelta, timezone

import pytest

from socialapp import models
from socialapp.services.messaging.message_service import parse_items, typing_cache


@pytest.fixture(autouse=True)
def _clear_typing():
    typing_cache.clear()
    yield
    typing_cache.clear()


@pytest.fixture
def conversation(authorized_client, test_user2):
    res = authorized_client.post(f"/conversations/{test_user2.id}")
    assert res.status_code == 200
    return res.json()


def _send(client, conversation_id, content="hi", **extra):
    return client.post(
        f"/conversations/{conversation_id}/messages", json={"content": content, **extra}
    )


def test_open_conversation_is_idempotent(authorized_client, client_for, conversation, test_user, test_user2):
    assert conversation["other_user"]["id"] == test_user2.id
    assert conversation["unread_count"] == 0

    again = authorized_client.post(f"/conversations/{test_user2.id}").json()
    assert again["id"] == conversation["id"]

    from_other_side = client_for(test_user2).post(f"/conversations/{test_user.id}").json()
    assert from_other_side["id"] == conversation["id"]
    assert from_other_side["other_user"]["id"] == test_user.id


def test_open_conversation_errors(authorized_client, session, test_user, test_user2):
    assert authorized_client.post(f"/conversations/{test_user.id}").status_code == 400
    assert authorized_client.post("/conversations/99999").status_code == 404

    session.add(models.UserBlock(blocker_id=test_user2.id, blocked_user_id=test_user.id))
    session.commit()
    res = authorized_client.post(f"/conversations/{test_user2.id}")
    assert res.status_code == 403


def test_messages_within_window_share_a_batch(authorized_client, client_for, session, conversation, test_user2):
    _send(authorized_client, conversation["id"], "one")
    _send(client_for(test_user2), conversation["id"], "two")
    _send(authorized_client, conversation["id"], "three")

    batches = session.query(models.MessageBatch).all()
    assert len(batches) == 1
    assert batches[0].message_count == 3
    assert [i["content"] for i in parse_items(batches[0])] == ["one", "two", "three"]


def test_message_after_window_starts_new_batch(authorized_client, session, conversation):
    _send(authorized_client, conversation["id"], "early")
    stale = datetime.now(timezone.utc) - timedelta(hours=3)
    session.query(models.MessageBatch).update(
        {"batch_start_time": stale, "batch_end_time": stale}
    )
    session.commit()

    _send(authorized_client, conversation["id"], "late")
    assert session.query(models.MessageBatch).count() == 2

    page = authorized_client.get(f"/conversations/{conversation['id']}/messages").json()
    assert [m["content"] for m in page["messages"]] == ["late", "early"]


def test_send_message_updates_preview_and_unread(authorized_client, client_for, conversation, test_user, test_user2):
    res = _send(authorized_client, conversation["id"], "  Hello Bob  ")
    assert res.status_code == 201
    body = res.json()
    assert body["content"] == "Hello Bob"
    assert body["sender_id"] == test_user.id
    assert body["message_type"] == "text"
    assert body["is_read"] is False

    bob = client_for(test_user2)
    listed = bob.get("/conversations").json()
    assert listed[0]["last_message_content"] == "Hello Bob"
    assert listed[0]["last_message_sender_id"] == test_user.id
    assert listed[0]["unread_count"] == 1
    assert bob.get("/conversations/unread-count").json() == {"unread_count": 1}
    assert authorized_client.get("/conversations/unread-count").json() == {"unread_count": 0}


def test_attachment_only_message(authorized_client, conversation):
    res = authorized_client.post(
        f"/conversations/{conversation['id']}/messages",
        json={
            "attachments": [
                {
                    "file_name": "photo.jpg",
                    "media_type": "image",
                    "media_url": "https://cdn.example.com/photo.jpg",
                    "file_size": 2048,
                }
            ]
        },
    )
    assert res.status_code == 201
    body = res.json()
    assert body["message_type"] == "media"
    assert len(body["attachment_ids"]) == 1
    assert body["attachments"][0]["file_name"] == "photo.jpg"
    assert body["attachments"][0]["message_item_id"] == body["id"]

    listed = authorized_client.get("/conversations").json()
    assert listed[0]["last_message_content"] == "[Media]"


def test_empty_message_rejected(authorized_client, conversation):
    res = authorized_client.post(
        f"/conversations/{conversation['id']}/messages", json={"content": "   "}
    )
    assert res.status_code == 422


def test_outsider_cannot_use_conversation(client_for, conversation, test_user3):
    carol = client_for(test_user3)
    assert _send(carol, conversation["id"]).status_code == 404
    assert carol.get(f"/conversations/{conversation['id']}/messages").status_code == 404


def test_block_stops_sending(authorized_client, session, conversation, test_user, test_user2):
    session.add(models.UserBlock(blocker_id=test_user2.id, blocked_user_id=test_user.id))
    session.commit()
    res = _send(authorized_client, conversation["id"])
    assert res.status_code == 403
    assert res.json()["detail"] == "You cannot message this user"


def test_history_before_and_limit(authorized_client, conversation):
    for word in ("a", "b", "c"):
        _send(authorized_client, conversation["id"], word)

    page = authorized_client.get(
        f"/conversations/{conversation['id']}/messages", params={"limit": 2}
    ).json()
    assert [m["content"] for m in page["messages"]] == ["c", "b"]
    assert page["has_more"] is True

    oldest_seen = page["messages"][-1]["sent_at"]
    older = authorized_client.get(
        f"/conversations/{conversation['id']}/messages",
        params={"before": oldest_seen, "limit": 2},
    ).json()
    assert [m["content"] for m in older["messages"]] == ["a"]
    assert older["has_more"] is False


def test_mark_read(authorized_client, client_for, session, conversation, test_user2):
    _send(authorized_client, conversation["id"], "one")
    _send(authorized_client, conversation["id"], "two")
    bob = client_for(test_user2)

    res = bob.put(f"/conversations/{conversation['id']}/read")
    assert res.json() == {"marked": 2}
    assert bob.put(f"/conversations/{conversation['id']}/read").json() == {"marked": 0}
    assert bob.get("/conversations/unread-count").json() == {"unread_count": 0}

    page = authorized_client.get(f"/conversations/{conversation['id']}/messages").json()
    assert all(m["is_read"] and m["read_at"] for m in page["messages"])


def test_mark_read_skips_own_messages(authorized_client, conversation):
    _send(authorized_client, conversation["id"], "mine")
    res = authorized_client.put(f"/conversations/{conversation['id']}/read")
    assert res.json() == {"marked": 0}


def test_delete_conversation(authorized_client, session, conversation):
    _send(authorized_client, conversation["id"])
    assert authorized_client.delete(f"/conversations/{conversation['id']}").status_code == 204
    assert session.query(models.Conversation).count() == 0
    assert authorized_client.delete(f"/conversations/{conversation['id']}").status_code == 404


def test_online_flag(authorized_client, client_for, conversation, test_user2):
    res = authorized_client.put(
        f"/conversations/{conversation['id']}/online", json={"is_online": True}
    )
    assert res.json() == {"conversation_id": conversation["id"], "is_online": True}
    seen_by_bob = client_for(test_user2).get("/conversations").json()[0]
    assert seen_by_bob["is_other_user_online"] is True

    authorized_client.put(f"/conversations/{conversation['id']}/online", json={"is_online": False})
    seen_by_bob = client_for(test_user2).get("/conversations").json()[0]
    assert seen_by_bob["is_other_user_online"] is False
    assert seen_by_bob["other_user_last_seen"] is not None


def test_typing_indicator(authorized_client, client_for, conversation, test_user, test_user2):
    res = authorized_client.post(
        f"/conversations/{conversation['id']}/typing", json={"is_typing": True}
    )
    assert res.json()["is_typing"] is True

    bob = client_for(test_user2)
    seen = bob.get(f"/conversations/{conversation['id']}/typing").json()
    assert seen == {"conversation_id": conversation["id"], "typing_user_ids": [test_user.id]}

    own_view = authorized_client.get(f"/conversations/{conversation['id']}/typing").json()
    assert own_view["typing_user_ids"] == []

    authorized_client.post(
        f"/conversations/{conversation['id']}/typing", json={"is_typing": False}
    )
    seen = bob.get(f"/conversations/{conversation['id']}/typing").json()
    assert seen["typing_user_ids"] == []


def test_parse_items_tolerates_corrupt_payload():
    batch = models.MessageBatch(id=1, messages_data="{not json")
    assert parse_items(batch) == []
    batch.messages_data = '{"id": "x"}'
    assert parse_items(batch) == []
