from socialapp import models


def test_admin_routes_require_admin(authorized_client, test_user2):
    res = authorized_client.put(f"/admin/users/{test_user2.id}/role", json={"role": "admin"})
    assert res.status_code == 403
    assert res.json()["detail"] == "Admin privileges required"


def test_set_role(client_for, admin_user, test_user2):
    res = client_for(admin_user).put(
        f"/admin/users/{test_user2.id}/role", json={"role": "admin"}
    )
    assert res.status_code == 200
    assert res.json()["role"] == "admin"


def test_set_role_unknown_user(client_for, admin_user):
    res = client_for(admin_user).put("/admin/users/99999/role", json={"role": "admin"})
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "User not found"


def test_delete_and_restore_user(client, client_for, admin_user, test_user2):
    admin = client_for(admin_user)
    deleted = admin.delete(f"/admin/users/{test_user2.id}")
    assert deleted.status_code == 200

    login = client.post("/auth/login", data={"username": "bob", "password": test_user2.password})
    assert login.status_code == 403

    restored = admin.post(f"/admin/users/{test_user2.id}/restore")
    assert restored.status_code == 200
    login = client.post("/auth/login", data={"username": "bob", "password": test_user2.password})
    assert login.status_code == 200


def test_comment_report_review(client_for, admin_user, test_comment, test_user2):
    report = client_for(test_user2).post(
        f"/comments/{test_comment.id}/reports", json={"reason": "offensive"}
    ).json()
    admin = client_for(admin_user)

    pending = admin.get("/admin/comment-reports", params={"status": "pending"}).json()
    assert [r["id"] for r in pending] == [report["id"]]

    res = admin.put(f"/admin/comment-reports/{report['id']}", json={"status": "resolved"})
    assert res.status_code == 200
    assert res.json()["status"] == "resolved"
    assert res.json()["resolved_at"] is not None

    assert admin.get("/admin/comment-reports", params={"status": "pending"}).json() == []


def test_admin_deletes_any_comment(client_for, session, admin_user, test_comment):
    res = client_for(admin_user).delete(f"/comments/{test_comment.id}")
    assert res.status_code == 204
    assert session.query(models.Comment).count() == 0


def test_system_notification_broadcast(client_for, session, admin_user, test_user, test_user2):
    res = client_for(admin_user).post(
        "/admin/notifications/system", json={"content": "Maintenance tonight"}
    )
    assert res.status_code == 200
    assert res.json() == {"sent": 2}
    system = (
        session.query(models.Notification)
        .filter(models.Notification.notification_type == int(models.NotificationType.SYSTEM))
        .all()
    )
    assert sorted(n.user_id for n in system) == sorted([test_user.id, test_user2.id])


def test_admin_user_detail_includes_deleted_accounts(client_for, admin_user, test_user2):
    admin = client_for(admin_user)
    res = admin.get(f"/admin/users/{test_user2.id}")
    assert res.status_code == 200
    body = res.json()
    assert body["username"] == "bob"
    assert body["email"] == "bob@example.com"
    assert body["is_deleted"] is False

    admin.delete(f"/admin/users/{test_user2.id}")
    res = admin.get(f"/admin/users/{test_user2.id}")
    assert res.status_code == 200
    assert res.json()["is_deleted"] is True
    assert res.json()["deleted_at"] is not None


def test_admin_user_detail_unknown_user(client_for, admin_user):
    res = client_for(admin_user).get("/admin/users/99999")
    assert res.status_code == 404
    assert res.json()["error"]["details"] == {"identifier": "99999"}


def test_admin_edits_another_profile(client_for, admin_user, test_user2):
    res = client_for(admin_user).put(
        f"/admin/users/{test_user2.id}", json={"bio": "Edited by staff", "username": "bobby"}
    )
    assert res.status_code == 200
    assert res.json()["bio"] == "Edited by staff"
    assert res.json()["username"] == "bobby"


def test_admin_edit_rejects_taken_username(client_for, admin_user, test_user, test_user2):
    res = client_for(admin_user).put(f"/admin/users/{test_user2.id}", json={"username": "alice"})
    assert res.status_code == 409
    assert res.json()["error"]["details"] == {"field": "username"}


def test_admin_user_endpoints_require_admin(authorized_client, test_user2):
    assert authorized_client.get(f"/admin/users/{test_user2.id}").status_code == 403
    res = authorized_client.put(f"/admin/users/{test_user2.id}", json={"bio": "x"})
    assert res.status_code == 403
