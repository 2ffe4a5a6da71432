from skillshare.database import crud
from skillshare.database.db import SessionLocal
from skillshare.tests.helpers import register


def _chat_with_messages(alice_id, bob_id, *lines):
    with SessionLocal() as db:
        chat = crud.find_or_create_chat(db, alice_id, bob_id)
        ids = [
            crud.save_message(db, chat, crud.get_user_by_username(db, sender), text).id for sender, text in lines
        ]
        return chat.id, ids


def test_find_or_create_chat_is_order_independent():
    with SessionLocal() as db:
        a = crud.create_user(db, "a", "a@mail.com", "x").id
        b = crud.create_user(db, "b", "b@mail.com", "x").id
        first = crud.find_or_create_chat(db, a, b).id
        second = crud.find_or_create_chat(db, b, a).id
    assert first == second


def test_list_chats_and_messages(client):
    alice, alice_headers, _ = register(client, "alice")
    bob, _, _ = register(client, "bob")
    chat_id, _ = _chat_with_messages(alice["id"], bob["id"], ("alice", "hello"), ("bob", "hey"))

    chats = client.get("/api/chats", headers=alice_headers).json()
    assert [c["id"] for c in chats] == [chat_id]
    assert chats[0]["last_message"] == "hey"
    assert {p["username"] for p in chats[0]["participants"]} == {"alice", "bob"}

    messages = client.get(f"/api/chats/{chat_id}", headers=alice_headers).json()
    assert [m["content"] for m in messages] == ["hello", "hey"]

    info = client.get(f"/api/chats/{chat_id}/info", headers=alice_headers)
    assert info.status_code == 200


def test_chat_access_limited_to_participants(client):
    alice, _, _ = register(client, "alice")
    bob, _, _ = register(client, "bob")
    _, eve_headers, _ = register(client, "eve")
    chat_id, _ = _chat_with_messages(alice["id"], bob["id"])

    assert client.get(f"/api/chats/{chat_id}", headers=eve_headers).status_code == 403
    assert client.get(f"/api/chats/{chat_id}/info", headers=eve_headers).status_code == 403
    assert client.get("/api/chats/9999/info", headers=eve_headers).status_code == 404


def test_only_sender_can_delete_message(client):
    alice, alice_headers, _ = register(client, "alice")
    bob, bob_headers, _ = register(client, "bob")
    chat_id, [msg_id] = _chat_with_messages(alice["id"], bob["id"], ("alice", "mine"))

    resp = client.delete(f"/api/chats/messages/{msg_id}", headers=bob_headers)
    assert resp.status_code == 403
    with SessionLocal() as db:
        assert crud.get_message(db, msg_id) is not None

    resp = client.delete(f"/api/chats/messages/{msg_id}", headers=alice_headers)
    assert resp.status_code == 200
    with SessionLocal() as db:
        assert crud.get_message(db, msg_id) is None

    assert client.delete(f"/api/chats/messages/{msg_id}", headers=alice_headers).status_code == 404


def test_bulk_delete_only_removes_own_messages(client):
    alice, alice_headers, _ = register(client, "alice")
    bob, bob_headers, _ = register(client, "bob")
    chat_id, ids = _chat_with_messages(
        alice["id"], bob["id"], ("alice", "one"), ("bob", "two"), ("alice", "three")
    )

    resp = client.post("/api/chats/messages/bulk-delete", json={"message_ids": ids}, headers=alice_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["deleted_count"] == 2
    assert sorted(body["deleted_ids"]) == [ids[0], ids[2]]

    remaining = client.get(f"/api/chats/{chat_id}", headers=bob_headers).json()
    assert [m["content"] for m in remaining] == ["two"]


def test_bulk_delete_with_nothing_owned_is_forbidden(client):
    alice, _, _ = register(client, "alice")
    bob, bob_headers, _ = register(client, "bob")
    _, ids = _chat_with_messages(alice["id"], bob["id"], ("alice", "one"))

    resp = client.post("/api/chats/messages/bulk-delete", json={"message_ids": ids}, headers=bob_headers)
    assert resp.status_code == 403


def test_message_ownership_survives_username_change(client):
    alice, alice_headers, _ = register(client, "alice")
    bob, _, _ = register(client, "bob")
    _, [first, second] = _chat_with_messages(alice["id"], bob["id"], ("alice", "one"), ("alice", "two"))

    resp = client.put("/api/auth/profile", json={"username": "alicia"}, headers=alice_headers)
    assert resp.status_code == 200
    resp = client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "second.alice@mail.com", "password": "secret123"},
    )
    assert resp.status_code == 201
    newcomer_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    assert client.delete(f"/api/chats/messages/{first}", headers=newcomer_headers).status_code == 403
    resp = client.post("/api/chats/messages/bulk-delete", json={"message_ids": [second]}, headers=newcomer_headers)
    assert resp.status_code == 403

    assert client.delete(f"/api/chats/messages/{first}", headers=alice_headers).status_code == 200
    resp = client.post("/api/chats/messages/bulk-delete", json={"message_ids": [second]}, headers=alice_headers)
    assert resp.json()["deleted_ids"] == [second]
