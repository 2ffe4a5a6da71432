import asyncio

from skillshare.database import crud
from skillshare.database.db import SessionLocal


class FakeWebSocket:
    """Stands in for a client socket when driving the hub directly."""

    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        self.sent.append(data)

    def events(self):
        return [m["event"] for m in self.sent]

    def payloads(self, event):
        return [m["data"] for m in self.sent if m["event"] == event]

    def clear(self):
        self.sent.clear()


def run(coro):
    return asyncio.run(coro)


def emit(hub, connection_id, event, data=None, ack=None):
    message = {"event": event, "data": data if data is not None else {}}
    if ack is not None:
        message["ack"] = ack
    run(hub.dispatch(connection_id, message))


def load_user(user_id):
    with SessionLocal() as db:
        user = crud.get_user(db, user_id)
        db.expunge(user)
        return user


def register(client, username, teach=(), learn=(), password="secret123"):
    resp = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "email": f"{username}@mail.com",
            "password": password,
            "skills_teach": list(teach),
            "skills_learn": list(learn),
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"], {"Authorization": f"Bearer {body['access_token']}"}, body["access_token"]
