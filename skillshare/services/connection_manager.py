# skillshare/services/connection_manager.py
# Live WebSocket connections and the rooms they have joined
import logging
import uuid
from collections import defaultdict
from typing import Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active: Dict[str, WebSocket] = {}
        self.rooms: Dict[str, Set[str]] = defaultdict(set)
        # Most recently joined room per connection
        self.current_room: Dict[str, Optional[str]] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active[connection_id] = websocket
        self.current_room[connection_id] = None
        logger.info(f"Connection opened: {connection_id}")
        return connection_id

    def disconnect(self, connection_id: str) -> Optional[str]:
        """Forgets the connection and returns the room it was last bound to."""
        self.active.pop(connection_id, None)
        room_id = self.current_room.pop(connection_id, None)
        for members in self.rooms.values():
            members.discard(connection_id)
        self._prune_rooms()
        logger.info(f"Connection closed: {connection_id}")
        return room_id

    def join_room(self, connection_id: str, room_id: str):
        # Earlier rooms are kept; a connection can listen to several rooms
        self.rooms[room_id].add(connection_id)
        self.current_room[connection_id] = room_id

    def leave_room(self, connection_id: str, room_id: str):
        members = self.rooms.get(room_id)
        if members is not None:
            members.discard(connection_id)
        if self.current_room.get(connection_id) == room_id:
            self.current_room[connection_id] = None
        self._prune_rooms()

    def room_members(self, room_id: str) -> Set[str]:
        return set(self.rooms.get(room_id, ()))

    def _prune_rooms(self):
        for room_id in [r for r, members in self.rooms.items() if not members]:
            del self.rooms[room_id]

    async def send(self, connection_id: Optional[str], event: str, data: Optional[dict] = None):
        websocket = self.active.get(connection_id) if connection_id else None
        if websocket is None:
            logger.warning(f"Dropping '{event}' for unknown connection {connection_id}")
            return
        try:
            await websocket.send_json({"event": event, "data": data or {}})
        except Exception as e:
            # The receive loop of that connection will notice and clean up
            logger.error(f"Failed to send '{event}' to {connection_id}: {str(e)}")

    async def emit_to_room(self, room_id: str, event: str, data: Optional[dict] = None, exclude: Optional[str] = None):
        for connection_id in self.room_members(room_id):
            if connection_id != exclude:
                await self.send(connection_id, event, data)

    async def broadcast(self, event: str, data: Optional[dict] = None):
        for connection_id in list(self.active):
            await self.send(connection_id, event, data)
