import pytest
from starlette.websockets import WebSocketDisconnect

from socialapp import models
from socialapp.api import websocket as ws_module
from socialapp.modules.notifications.realtime import manager


def test_ping_pong(client, test_user, token):
    with client.websocket_connect(f"/ws/{test_user.id}?token={token}") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        assert manager.is_online(test_user.id)


def test_tokenless_allowed_in_test_env(client, test_user):
    with client.websocket_connect(f"/ws/{test_user.id}") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_tokenless_rejected_outside_test_env(client, test_user, monkeypatch):
    monkeypatch.setattr(ws_module, "_is_test_env", lambda: False)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/{test_user.id}"):
            pass
    assert exc.value.code == ws_module.WS_UNAUTHORIZED


def test_invalid_token_rejected(client, test_user):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/{test_user.id}?token=garbage"):
            pass
    assert exc.value.code == ws_module.WS_UNAUTHORIZED


def test_user_mismatch_rejected(client, test_user2, token):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/{test_user2.id}?token={token}"):
            pass
    assert exc.value.code == 1008


def test_unknown_action_and_bad_frames(client, test_user, token):
    with client.websocket_connect(f"/ws/{test_user.id}?token={token}") as ws:
        ws.send_json({"action": "dance"})
        assert ws.receive_json() == {"type": "error", "message": "Unknown action"}
        ws.send_json({"action": "join"})
        assert ws.receive_json() == {"type": "error", "message": "Missing group"}
        ws.send_json(["not", "a", "dict"])
        assert ws.receive_json() == {"type": "error", "message": "Invalid frame"}


def test_join_rules(client, session, test_user, test_user2, token):
    room = models.ChatRoom(name="r", room_type=models.ChatRoomType.GROUP, created_by=test_user.id)
    room.members = [models.ChatRoomMember(user_id=test_user.id, role=models.ChatMemberRole.OWNER)]
    session.add(room)
    session.commit()
    room_id = room.id

    with client.websocket_connect(f"/ws/{test_user.id}?token={token}") as ws:
        ws.send_json({"action": "join", "group": f"ChatRoom_{room_id}"})
        assert ws.receive_json() == {"type": "joined", "group": f"ChatRoom_{room_id}"}
        assert test_user.id in manager.group_members(f"ChatRoom_{room_id}")

        ws.send_json({"action": "join", "group": f"User_{test_user2.id}"})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"action": "join", "group": "Conversation_424242"})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"action": "leave", "group": f"ChatRoom_{room_id}"})
        assert ws.receive_json() == {"type": "left", "group": f"ChatRoom_{room_id}"}
        assert test_user.id not in manager.group_members(f"ChatRoom_{room_id}")

        ws.send_json({"action": "leave", "group": f"User_{test_user.id}"})
        ws.receive_json()
        assert test_user.id in manager.group_members(f"User_{test_user.id}")


def test_typing_requires_joined_group(client, test_user, token):
    with client.websocket_connect(f"/ws/{test_user.id}?token={token}") as ws:
        ws.send_json({"action": "typing", "group": "ChatRoom_1"})
        reply = ws.receive_json()
        assert reply["type"] == "error"
        assert reply["message"] == "Join the group first"


def test_direct_message_pushed_to_receiver(
    authorized_client, test_user, test_user2, token_for
):
    conversation = authorized_client.post(f"/conversations/{test_user2.id}").json()
    bob_token = token_for(test_user2)
    with authorized_client.websocket_connect(f"/ws/{test_user2.id}?token={bob_token}") as ws:
        res = authorized_client.post(
            f"/conversations/{conversation['id']}/messages", json={"content": "ping bob"}
        )
        assert res.status_code == 201
        event = ws.receive_json()
        assert event["type"] == "new_message"
        assert event["message"]["content"] == "ping bob"


def test_disconnect_unregisters(client, test_user, token):
    with client.websocket_connect(f"/ws/{test_user.id}?token={token}") as ws:
        ws.send_json({"action": "ping"})
        ws.receive_json()
    assert not manager.is_online(test_user.id)


def test_idle_socket_holds_no_pooled_connection(client, session, test_user, token):
    room = models.ChatRoom(name="idle", room_type=models.ChatRoomType.GROUP, created_by=test_user.id)
    room.members = [models.ChatRoomMember(user_id=test_user.id, role=models.ChatMemberRole.OWNER)]
    session.add(room)
    session.commit()
    room_id = room.id
    pool = session.get_bind().pool

    with client.websocket_connect(f"/ws/{test_user.id}?token={token}") as ws:
        ws.send_json({"action": "join", "group": f"ChatRoom_{room_id}"})
        assert ws.receive_json()["type"] == "joined"
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        assert pool.checkedout() == 0
        assert not session.in_transaction()
