# skillshare/services/session_hub.py
# Realtime session lifecycle: presence, matchmaking, rooms and chat relay
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket
from sqlalchemy.exc import SQLAlchemyError

from skillshare.database import crud
from skillshare.database.db import SessionLocal
from skillshare.services.connection_manager import ConnectionManager
from skillshare.services.matching import MatchQueue, WaitingEntry, is_skill_compatible, normalize_skills

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _invite_profile(user_id, username, skills_teach, skills_learn, rating) -> dict:
    return {
        "id": user_id,
        "username": username,
        "skillsTeach": list(skills_teach or []),
        "skillsLearn": list(skills_learn or []),
        "rating": rating or 0.0,
    }


class SessionHub:
    """
    Handles every event coming in over the realtime channel.

    Each connection is authenticated once when it opens; handlers receive the
    user id bound to the connection and never trust ids sent by the client.
    """

    def __init__(self, session_factory=SessionLocal, manager: ConnectionManager = None, queue: MatchQueue = None):
        self.session_factory = session_factory
        self.manager = manager or ConnectionManager()
        self.queue = queue or MatchQueue()
        self.identities: Dict[str, int] = {}
        self._handlers = {
            "join_user": self.join_user,
            "find_match": self.find_match,
            "cancel_search": self.cancel_search,
            "join_room": self.join_room,
            "leave_room": self.leave_room,
            "send_message": self.send_message,
            "delete_message": self.delete_message,
            "bulk_delete_messages": self.bulk_delete_messages,
            "send_invite": self.send_invite,
        }

    # --- connection lifecycle ---

    def user_exists(self, user_id: int) -> bool:
        with self.session_factory() as db:
            return crud.get_user(db, user_id) is not None

    async def connect(self, websocket: WebSocket, user_id: int) -> str:
        connection_id = await self.manager.connect(websocket)
        self.identities[connection_id] = user_id
        await self._mark_online(connection_id, user_id)
        return connection_id

    async def _mark_online(self, connection_id: str, user_id: int):
        try:
            with self.session_factory() as db:
                user = crud.set_online(db, user_id, connection_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not mark user {user_id} online: {str(e)}")
            return
        if user is not None:
            await self.manager.broadcast("user_status_changed", {"userId": user_id, "isOnline": True})

    async def disconnect(self, connection_id: str):
        self.identities.pop(connection_id, None)
        room_id = self.manager.disconnect(connection_id)
        if room_id:
            logger.info(f"[CHAT] {connection_id} dropped out of room {room_id}, ending session")
            await self.manager.emit_to_room(room_id, "session_ended", {"roomId": room_id})

        await self.queue.cancel(connection_id)

        try:
            with self.session_factory() as db:
                user = crud.set_offline_by_connection(db, connection_id)
                user_id = user.id if user is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Could not clear presence for {connection_id}: {str(e)}")
            return
        if user_id is not None:
            await self.manager.broadcast("user_status_changed", {"userId": user_id, "isOnline": False})

    async def dispatch(self, connection_id: str, message: Any):
        """Routes one incoming frame to its handler and acknowledges it if asked to."""
        if not isinstance(message, dict):
            await self.manager.send(connection_id, "error", {"message": "Expected a JSON object"})
            return

        event = message.get("event")
        handler = self._handlers.get(event)
        if handler is None:
            await self.manager.send(connection_id, "error", {"message": f"Unknown event: {event}"})
            return

        data = message.get("data")
        if data is None:
            data = {}
        elif not isinstance(data, dict):
            if event != "join_user":
                await self.manager.send(connection_id, "error", {"message": f"'{event}' expects an object"})
                return
            data = {"userId": data}

        user_id = self.identities.get(connection_id)
        try:
            await handler(connection_id, user_id, data)
        except Exception:
            logger.exception(f"Error while handling '{event}' from {connection_id}")

        ack = message.get("ack")
        if ack is not None:
            await self.manager.send(connection_id, "ack", {"id": ack})

    def _claims_other_identity(self, user_id: int, claimed: Any, event: str) -> bool:
        if claimed is None:
            return False
        if _as_int(claimed) != user_id:
            logger.warning(f"Ignoring '{event}': connection of user {user_id} claimed to be {claimed}")
            return True
        return False

    # --- presence ---

    async def join_user(self, connection_id: str, user_id: int, data: dict):
        if self._claims_other_identity(user_id, data.get("userId"), "join_user"):
            return
        await self._mark_online(connection_id, user_id)

    # --- matchmaking ---

    async def find_match(self, connection_id: str, user_id: int, data: dict):
        if self._claims_other_identity(user_id, data.get("userId"), "find_match"):
            return
        target_user_id = _as_int(data.get("targetUserId"))
        logger.info(f"User {user_id} looking for match. Targeting: {target_user_id or 'anyone'}")

        with self.session_factory() as db:
            user = crud.get_user(db, user_id)
            if user is None:
                logger.warning(f"find_match from unknown user {user_id}")
                return
            candidate = WaitingEntry.for_user(user, connection_id, target_user_id)

            def open_room(partner: WaitingEntry) -> str:
                chat = crud.find_or_create_chat(db, candidate.user_id, partner.user_id)
                return str(chat.id)

            partner, room_id = await self.queue.submit(candidate, on_match=open_room)

        if partner is None:
            await self.manager.send(connection_id, "waiting_for_match")
            await self._broadcast_invites(candidate)
            return

        await self.manager.send(
            candidate.connection_id, "match_found", {"roomId": room_id, "partner": partner.public_profile()}
        )
        await self.manager.send(
            partner.connection_id, "match_found", {"roomId": room_id, "partner": candidate.public_profile()}
        )

    async def _broadcast_invites(self, candidate: WaitingEntry):
        """Nudges online, compatible users who are not searching yet."""
        try:
            with self.session_factory() as db:
                online = [
                    (u.connection_id, u.username, normalize_skills(u.skills_teach), normalize_skills(u.skills_learn), u.id)
                    for u in crud.list_online_users(db, exclude_user_id=candidate.user_id)
                ]
        except SQLAlchemyError as e:
            logger.error(f"Error broadcasting invites: {str(e)}")
            return

        queued = self.queue.user_ids()
        invite = {
            "startUser": _invite_profile(
                candidate.user_id,
                candidate.username,
                candidate.skills_teach,
                candidate.skills_learn,
                candidate.rating,
            )
        }
        for connection_id, username, teach, learn, user_id in online:
            if user_id in queued:
                continue
            if is_skill_compatible(candidate.teach, candidate.learn, teach, learn):
                logger.info(f"[MATCH] Sending invite to {username}")
                await self.manager.send(connection_id, "match_invite", invite)

    async def cancel_search(self, connection_id: str, user_id: int, data: dict):
        entry = await self.queue.cancel(connection_id)
        if entry is not None:
            await self.manager.send(connection_id, "search_canceled")

    async def send_invite(self, connection_id: str, user_id: int, data: dict):
        if self._claims_other_identity(user_id, data.get("senderId"), "send_invite"):
            return
        target_user_id = _as_int(data.get("targetUserId"))
        if target_user_id is None or target_user_id == user_id:
            return

        with self.session_factory() as db:
            sender = crud.get_user(db, user_id)
            target = crud.get_user(db, target_user_id)
            if sender is None or target is None or not target.connection_id:
                logger.info(f"[INVITE] Target {target_user_id} is not reachable")
                return
            target_connection = target.connection_id
            invite = {
                "startUser": _invite_profile(
                    sender.id, sender.username, sender.skills_teach, sender.skills_learn, sender.rating
                )
            }
            logger.info(f"[INVITE] Sending direct invite from {sender.username} to {target.username}")

        await self.manager.send(target_connection, "match_invite", invite)

    # --- rooms ---

    def _load_room(self, db, room_id: Any, user_id: int, event: str):
        chat = crud.get_chat(db, _as_int(room_id)) if _as_int(room_id) is not None else None
        if chat is None:
            logger.warning(f"'{event}' for unknown room {room_id}")
            return None
        if not chat.has_participant(user_id):
            logger.warning(f"'{event}': user {user_id} is not part of room {room_id}")
            return None
        return chat

    async def join_room(self, connection_id: str, user_id: int, data: dict):
        room_id = data.get("roomId")
        with self.session_factory() as db:
            if self._load_room(db, room_id, user_id, "join_room") is None:
                return
        self.manager.join_room(connection_id, str(room_id))

    async def leave_room(self, connection_id: str, user_id: int, data: dict):
        """Explicit end of a session. Only the first end of a chat counts as a completed session."""
        room_id = data.get("roomId")
        if room_id is None:
            return
        room_id = str(room_id)

        try:
            with self.session_factory() as db:
                chat = self._load_room(db, room_id, user_id, "leave_room")
                if chat is not None and crud.complete_chat(db, chat.id):
                    logger.info(f"[CHAT] Sessions incremented for both participants in room {room_id}")
        except SQLAlchemyError as e:
            logger.error(f"[CHAT] Error incrementing sessions: {str(e)}")

        await self.manager.emit_to_room(room_id, "session_ended", {"roomId": room_id}, exclude=connection_id)
        self.manager.leave_room(connection_id, room_id)

    # --- chat relay ---

    async def send_message(self, connection_id: str, user_id: int, data: dict):
        content = data.get("content")
        room_id = data.get("roomId")
        if not isinstance(content, str) or not content.strip():
            logger.info(f"[CHAT] Ignoring empty message from user {user_id}")
            return

        with self.session_factory() as db:
            chat = self._load_room(db, room_id, user_id, "send_message")
            sender = crud.get_user(db, user_id)
            if chat is None or sender is None:
                return
            message = crud.save_message(db, chat, sender, content)
            payload = {
                "_id": message.id,
                "roomId": str(room_id),
                "content": message.content,
                "sender": message.sender,
                "timestamp": message.created_at.isoformat(),
            }

        await self.manager.emit_to_room(str(room_id), "receive_message", payload)

    async def delete_message(self, connection_id: str, user_id: int, data: dict):
        # Ownership is checked by the REST delete; this only tells the room
        room_id = data.get("roomId")
        if room_id is None:
            return
        await self.manager.emit_to_room(str(room_id), "message_deleted", {"messageId": data.get("messageId")})
        logger.info(f"[CHAT] Message {data.get('messageId')} deleted in room {room_id}")

    async def bulk_delete_messages(self, connection_id: str, user_id: int, data: dict):
        room_id = data.get("roomId")
        message_ids = data.get("messageIds") or []
        if room_id is None:
            return
        await self.manager.emit_to_room(str(room_id), "messages_bulk_deleted", {"messageIds": list(message_ids)})
        logger.info(f"[CHAT] {len(message_ids)} messages deleted in room {room_id}")
