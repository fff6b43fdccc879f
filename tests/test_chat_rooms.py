import pytest

from socialapp import models

GROUP = 1
PRIVATE = 0
OWNER, ADMIN, MEMBER = 3, 2, 1


@pytest.fixture
def room(authorized_client, test_user2):
    res = authorized_client.post(
        "/chat/rooms",
        json={"name": "Weekend plans", "room_type": GROUP, "member_ids": [test_user2.id]},
    )
    assert res.status_code == 201
    return res.json()


def _say(client, room_id, content="hello"):
    return client.post(f"/chat/rooms/{room_id}/messages", json={"content": content})


def test_create_group_room(room, test_user, test_user2):
    assert room["display_name"] == "Weekend plans"
    assert room["created_by"] == test_user.id
    roles = {m["user"]["id"]: m["role"] for m in room["members"]}
    assert roles == {test_user.id: OWNER, test_user2.id: MEMBER}


def test_create_room_with_unknown_member(authorized_client):
    res = authorized_client.post(
        "/chat/rooms", json={"name": "x", "room_type": GROUP, "member_ids": [99999]}
    )
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "invalid_room_member"
    assert error["message"] == "User 99999 cannot be added to this room"
    assert error["details"] == {"user_id": 99999}


def test_create_room_with_blocked_member(authorized_client, session, test_user, test_user2):
    session.add(models.UserBlock(blocker_id=test_user2.id, blocked_user_id=test_user.id))
    session.commit()
    res = authorized_client.post(
        "/chat/rooms", json={"name": "x", "room_type": GROUP, "member_ids": [test_user2.id]}
    )
    assert res.status_code == 400


def test_private_room_is_reused(authorized_client, client_for, test_user, test_user2):
    first = authorized_client.post(f"/chat/private/{test_user2.id}")
    assert first.status_code == 200
    body = first.json()
    assert body["room_type"] == PRIVATE
    assert body["display_name"] == "Bob"

    again = client_for(test_user2).post(f"/chat/private/{test_user.id}").json()
    assert again["id"] == body["id"]
    assert again["display_name"] == "Alice Smith"


def test_private_room_rules(authorized_client, test_user, test_user2, test_user3):
    assert authorized_client.post(f"/chat/private/{test_user.id}").status_code == 400
    res = authorized_client.post(
        "/chat/rooms",
        json={"room_type": PRIVATE, "member_ids": [test_user2.id, test_user3.id]},
    )
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "A private room needs exactly one other member"


def test_list_and_get_rooms(authorized_client, client_for, room, test_user3):
    listed = authorized_client.get("/chat/rooms").json()
    assert [r["id"] for r in listed["rooms"]] == [room["id"]]
    assert listed["total_count"] == 1

    assert authorized_client.get(f"/chat/rooms/{room['id']}").status_code == 200
    assert client_for(test_user3).get(f"/chat/rooms/{room['id']}").status_code == 404


def test_update_room_requires_manager(authorized_client, client_for, room, test_user2):
    res = authorized_client.put(f"/chat/rooms/{room['id']}", json={"name": "Renamed"})
    assert res.status_code == 200
    assert res.json()["name"] == "Renamed"

    denied = client_for(test_user2).put(f"/chat/rooms/{room['id']}", json={"name": "Mine"})
    assert denied.status_code == 403


def test_delete_room_creator_only(authorized_client, client_for, room, test_user2):
    denied = client_for(test_user2).delete(f"/chat/rooms/{room['id']}")
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "permission_denied"
    assert denied.json()["error"]["message"] == "Only the room creator can delete this room"

    assert authorized_client.delete(f"/chat/rooms/{room['id']}").status_code == 204
    assert authorized_client.get(f"/chat/rooms/{room['id']}").status_code == 404


def test_add_member_posts_system_message(authorized_client, room, test_user3):
    res = authorized_client.post(
        f"/chat/rooms/{room['id']}/members", json={"user_ids": [test_user3.id]}
    )
    assert res.status_code == 200
    assert test_user3.id in [m["user"]["id"] for m in res.json()["members"]]

    messages = authorized_client.get(f"/chat/rooms/{room['id']}/messages").json()["messages"]
    assert messages[-1]["message_type"] == 4
    assert messages[-1]["content"] == "Alice Smith added carol"


def test_member_cannot_add_members(client_for, room, test_user2, test_user3):
    res = client_for(test_user2).post(
        f"/chat/rooms/{room['id']}/members", json={"user_ids": [test_user3.id]}
    )
    assert res.status_code == 403


def test_remove_and_readd_member(authorized_client, client_for, room, test_user2):
    res = authorized_client.delete(f"/chat/rooms/{room['id']}/members/{test_user2.id}")
    assert res.status_code == 204
    assert client_for(test_user2).get(f"/chat/rooms/{room['id']}").status_code == 404
    missing = authorized_client.delete(f"/chat/rooms/{room['id']}/members/{test_user2.id}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Member not found"

    authorized_client.post(f"/chat/rooms/{room['id']}/members", json={"user_ids": [test_user2.id]})
    assert client_for(test_user2).get(f"/chat/rooms/{room['id']}").status_code == 200


def test_owner_cannot_be_removed_by_admin(authorized_client, client_for, session, room, test_user, test_user2):
    session.query(models.ChatRoomMember).filter(
        models.ChatRoomMember.user_id == test_user2.id
    ).update({"role": models.ChatMemberRole.ADMIN})
    session.commit()
    res = client_for(test_user2).delete(f"/chat/rooms/{room['id']}/members/{test_user.id}")
    assert res.status_code == 403


def test_leave_room(client_for, room, test_user2):
    bob = client_for(test_user2)
    assert bob.post(f"/chat/rooms/{room['id']}/leave").status_code == 204
    assert bob.get("/chat/rooms").json()["rooms"] == []
    assert _say(bob, room["id"]).status_code == 403


def test_send_and_page_messages(authorized_client, client_for, room, test_user2):
    for word in ("one", "two", "three"):
        assert _say(authorized_client, room["id"], word).status_code == 201

    page = client_for(test_user2).get(
        f"/chat/rooms/{room['id']}/messages", params={"page_size": 2}
    ).json()
    assert [m["content"] for m in page["messages"]] == ["two", "three"]
    assert page["total_count"] == 3
    assert page["has_next"] is True

    older = client_for(test_user2).get(
        f"/chat/rooms/{room['id']}/messages", params={"page": 2, "page_size": 2}
    ).json()
    assert [m["content"] for m in older["messages"]] == ["one"]

    listed = authorized_client.get("/chat/rooms").json()["rooms"][0]
    assert listed["last_message"]["content"] == "three"


def test_non_member_cannot_send(client_for, room, test_user3):
    res = _say(client_for(test_user3), room["id"])
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "You are not a member of this room"


def test_reply_must_be_in_room(authorized_client, room, test_user3):
    other = authorized_client.post(
        "/chat/rooms", json={"name": "other", "room_type": GROUP, "member_ids": [test_user3.id]}
    ).json()
    foreign = _say(authorized_client, other["id"]).json()
    res = authorized_client.post(
        f"/chat/rooms/{room['id']}/messages",
        json={"content": "re", "reply_to_message_id": foreign["id"]},
    )
    assert res.status_code == 400


def test_edit_and_delete_message(authorized_client, client_for, room, test_user2):
    message = _say(authorized_client, room["id"], "typo").json()
    bob = client_for(test_user2)

    assert bob.put(f"/chat/messages/{message['id']}", json={"content": "x"}).status_code == 403
    edited = authorized_client.put(f"/chat/messages/{message['id']}", json={"content": "fixed"})
    assert edited.status_code == 200
    assert edited.json()["edited_at"] is not None

    assert bob.delete(f"/chat/messages/{message['id']}").status_code == 403
    assert authorized_client.delete(f"/chat/messages/{message['id']}").status_code == 204
    assert authorized_client.get(f"/chat/rooms/{room['id']}/messages").json()["total_count"] == 0


def test_manager_can_delete_others_messages(authorized_client, client_for, room, test_user2):
    message = _say(client_for(test_user2), room["id"]).json()
    assert authorized_client.delete(f"/chat/messages/{message['id']}").status_code == 204


def test_read_receipts_and_unread(authorized_client, client_for, room, test_user2):
    _say(authorized_client, room["id"], "a")
    _say(authorized_client, room["id"], "b")
    bob = client_for(test_user2)

    unread = bob.get(f"/chat/rooms/{room['id']}/unread-count").json()
    assert unread == {"room_id": room["id"], "unread_count": 2}

    marked = bob.post(f"/chat/rooms/{room['id']}/read", json={}).json()
    assert marked == {"room_id": room["id"], "marked": 2}
    assert bob.post(f"/chat/rooms/{room['id']}/read", json={}).json()["marked"] == 0
    assert bob.get(f"/chat/rooms/{room['id']}/unread-count").json()["unread_count"] == 0


def test_chat_user_search(authorized_client, test_user2, test_user3):
    res = authorized_client.get("/chat/users/search", params={"q": "car"})
    assert res.status_code == 200
    assert [u["username"] for u in res.json()] == ["carol"]
