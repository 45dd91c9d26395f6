import csv
import io

from livechat import models

from conftest import ADMIN_PASSWORD


def make_chat(db, name, status="ACTIVE", content=None, email=None):
    user = models.User(name=name, email=email, role="USER")
    db.add(user)
    db.flush()
    chat = models.ChatSession(user_id=user.id, status=status)
    db.add(chat)
    db.flush()
    if content:
        db.add(models.Message(chat_id=chat.id, user_id=user.id, content=content))
    db.commit()
    return chat


# === Auth ===

def test_admin_routes_require_cookie(client):
    resp = client.get("/admin/chats")
    assert resp.status_code == 401


def test_unknown_session_is_forbidden(client):
    client.cookies.set("admin_session", "bogus")
    assert client.get("/admin/chats").status_code == 403


def test_login_rejects_bad_password(client, admin):
    resp = client.post("/auth/login", json={"email": admin.email, "password": "wrong"})
    assert resp.status_code == 401


def test_login_rejects_non_admin(client, db):
    from livechat.services.auth_service import hash_password

    db.add(models.User(email="agent@chatbot.com", name="Agent", password=hash_password("pw"), role="AGENT"))
    db.commit()
    resp = client.post("/auth/login", json={"email": "agent@chatbot.com", "password": "pw"})
    assert resp.status_code == 403


def test_login_sets_opaque_cookie(client, admin, fake_redis):
    resp = client.post("/auth/login", json={"email": admin.email, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    token = resp.cookies.get("admin_session")
    assert token and token != admin.id
    assert fake_redis.get(f"admin_session:{token}") == admin.id
    assert fake_redis.ttl(f"admin_session:{token}") > 0


def test_me_and_logout(admin_client, admin, fake_redis):
    resp = admin_client.get("/auth/me")
    assert resp.status_code == 200
    assert resp.json()["admin"]["email"] == admin.email

    assert admin_client.post("/auth/logout").status_code == 200
    assert fake_redis.keys("admin_session:*") == []
    assert admin_client.get("/auth/me").status_code == 401


def test_banned_admin_loses_access(admin_client, db, admin):
    admin.is_banned = True
    db.commit()
    assert admin_client.get("/admin/chats").status_code == 403


# === Chats ===

def test_list_filter_search_and_paginate(admin_client, db):
    make_chat(db, "Alice", content="my order is late")
    make_chat(db, "Bob", status="CLOSED", content="refund please")
    make_chat(db, "Carol", email="carol@example.com")

    body = admin_client.get("/admin/chats").json()
    assert body["total"] == 3

    closed = admin_client.get("/admin/chats", params={"status": "CLOSED"}).json()
    assert [c["user"]["name"] for c in closed["items"]] == ["Bob"]

    by_content = admin_client.get("/admin/chats", params={"q": "order"}).json()
    assert [c["user"]["name"] for c in by_content["items"]] == ["Alice"]
    assert by_content["items"][0]["lastMessage"] == "my order is late"
    assert by_content["items"][0]["messageCount"] == 1

    by_email = admin_client.get("/admin/chats", params={"q": "carol@"}).json()
    assert by_email["total"] == 1

    page = admin_client.get("/admin/chats", params={"page": 2, "limit": 2}).json()
    assert page["total"] == 3
    assert len(page["items"]) == 1


def test_close_notifies_room(admin_client, db, chat, broadcaster):
    resp = admin_client.post(f"/admin/chats/{chat.id}/close", json={"reason": "Spam"})
    assert resp.status_code == 200

    db.expire_all()
    assert db.get(models.ChatSession, chat.id).status == "CLOSED"
    assert broadcaster.room_events == [
        (chat.id, "chat-closed-by-admin", {
            "chatId": chat.id,
            "reason": "Spam",
            "message": "This chat has been closed by support",
        })
    ]


def test_reopen_clears_closed_at(admin_client, db, chat):
    admin_client.post(f"/admin/chats/{chat.id}/close")
    assert admin_client.post(f"/admin/chats/{chat.id}/reopen").status_code == 200

    db.expire_all()
    reopened = db.get(models.ChatSession, chat.id)
    assert reopened.status == "ACTIVE"
    assert reopened.closed_at is None


def test_close_unknown_chat(admin_client, broadcaster):
    assert admin_client.post("/admin/chats/missing/close").status_code == 404
    assert broadcaster.room_events == []


def test_assign_and_notes(admin_client, db, chat, admin, visitor):
    resp = admin_client.post(f"/admin/chats/{chat.id}/assign", json={"agentId": admin.id})
    assert resp.json()["assignedAgentId"] == admin.id

    assert admin_client.post(f"/admin/chats/{chat.id}/assign", json={"agentId": visitor.id}).status_code == 400

    admin_client.put(f"/admin/chats/{chat.id}/notes", json={"internalNotes": "VIP customer"})
    detail = admin_client.get(f"/admin/chats/{chat.id}").json()
    assert detail["internalNotes"] == "VIP customer"
    assert detail["notes"] is None
    assert detail["assignedAgentId"] == admin.id


def test_delete_chat_cascades_messages(admin_client, db):
    chat = make_chat(db, "Dan", content="bye")
    assert admin_client.delete(f"/admin/chats/{chat.id}").status_code == 200

    db.expire_all()
    assert db.get(models.ChatSession, chat.id) is None
    assert db.query(models.Message).filter(models.Message.chat_id == chat.id).count() == 0


def test_chat_messages(admin_client, db):
    chat = make_chat(db, "Eve", content="hello")
    messages = admin_client.get(f"/admin/chats/{chat.id}/messages").json()
    assert [m["content"] for m in messages] == ["hello"]
    assert messages[0]["sender"] == "USER"


def test_export_csv(admin_client, db):
    make_chat(db, "Frank", content="one")
    make_chat(db, "Grace", status="CLOSED")

    resp = admin_client.get("/admin/chats/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(resp.text)))
    assert rows[0][:3] == ["id", "status", "visitor"]
    assert sorted(r[2] for r in rows[1:]) == ["Frank", "Grace"]

    closed_only = list(csv.reader(io.StringIO(admin_client.get("/admin/chats/export", params={"status": "CLOSED"}).text)))
    assert [r[2] for r in closed_only[1:]] == ["Grace"]


# === Users, settings, analytics ===

def test_ban_and_role(admin_client, db, visitor, admin):
    resp = admin_client.post(f"/admin/users/{visitor.id}/ban", json={"isBanned": True})
    assert resp.status_code == 200
    assert resp.json()["isBanned"] is True

    resp = admin_client.post(f"/admin/users/{visitor.id}/role", json={"role": "AGENT"})
    assert resp.json()["role"] == "AGENT"

    assert admin_client.post(f"/admin/users/{admin.id}/ban", json={"isBanned": True}).status_code == 400

    banned = admin_client.get("/admin/users", params={"banned": True}).json()
    assert [u["id"] for u in banned] == [visitor.id]


def test_delete_user_removes_their_chats(admin_client, db, chat, visitor):
    assert admin_client.delete(f"/admin/users/{visitor.id}").status_code == 200
    db.expire_all()
    assert db.get(models.ChatSession, chat.id) is None


def test_settings_roundtrip(admin_client):
    current = admin_client.get("/admin/settings").json()
    assert current["enableAutoResponse"] is True

    resp = admin_client.put("/admin/settings", json={"enableAutoResponse": False, "autoResponseMessage": "Hi!"})
    assert resp.status_code == 200
    assert resp.json()["enableAutoResponse"] is False
    assert resp.json()["autoResponseMessage"] == "Hi!"
    assert resp.json()["maxMessageLength"] == current["maxMessageLength"]


def test_settings_reject_null_for_required_fields(admin_client):
    before = admin_client.get("/admin/settings").json()

    for key in ("maxChatsPerUser", "autoCloseTimeout", "maintenanceMode"):
        assert admin_client.put("/admin/settings", json={key: None}).status_code == 422

    assert admin_client.get("/admin/settings").json() == before

    # auto-response text may be cleared
    resp = admin_client.put("/admin/settings", json={"autoResponseMessage": None})
    assert resp.status_code == 200
    assert resp.json()["autoResponseMessage"] is None


def test_analytics(admin_client, db):
    make_chat(db, "A", content="x")
    make_chat(db, "B", status="CLOSED")
    make_chat(db, "C", status="CLOSED")

    body = admin_client.get("/admin/analytics").json()
    assert body["activeCount"] == 1
    assert body["closedCount"] == 2
    assert body["totalCount"] == 3
    assert body["totalMessages"] == 1
    assert body["chatsToday"] == 3


def test_analytics_per_agent(admin_client, db, admin, visitor):
    agent = models.User(name="Agent Smith", email="smith@example.com", role="AGENT")
    db.add(agent)
    db.flush()
    db.add_all([
        models.ChatSession(user_id=visitor.id, assigned_agent_id=admin.id, status="CLOSED",
                           duration=60, satisfaction_rating=4),
        models.ChatSession(user_id=visitor.id, assigned_agent_id=admin.id, status="CLOSED",
                           duration=120, satisfaction_rating=2),
        models.ChatSession(user_id=visitor.id, assigned_agent_id=admin.id),
    ])
    chat = make_chat(db, "Walk-in")
    db.add_all([
        models.Message(chat_id=chat.id, user_id=admin.id, content="hello"),
        models.Message(chat_id=chat.id, user_id=admin.id, content="auto", is_bot=True),
    ])
    db.commit()

    agents = {a["agentId"]: a for a in admin_client.get("/admin/analytics").json()["agents"]}

    assert visitor.id not in agents
    mine = agents[admin.id]
    assert mine["totalChats"] == 3
    assert mine["closedChats"] == 2
    assert mine["totalMessages"] == 1
    assert mine["avgRating"] == 3.0
    assert mine["avgResolutionTime"] == 90.0

    idle = agents[agent.id]
    assert idle["totalChats"] == 0
    assert idle["avgRating"] is None
    assert idle["avgResolutionTime"] is None


def test_activity_log_records_admin_actions(admin_client, chat):
    admin_client.post(f"/admin/chats/{chat.id}/close")
    admin_client.post(f"/admin/chats/{chat.id}/reopen")

    actions = [a["action"] for a in admin_client.get("/admin/activity").json()]
    assert set(actions) == {"CLOSE_CHAT", "REOPEN_CHAT"}
