# skillshare/routes/socket_routes.py
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from skillshare.auth import auth_utils

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def session_socket(websocket: WebSocket, token: Optional[str] = None):
    """
    Realtime channel. Authenticate with ``/ws?token=<access token>``, then
    exchange frames shaped like ``{"event": ..., "data": {...}, "ack": <optional id>}``.
    """
    hub = websocket.app.state.hub

    user_id = auth_utils.user_id_from_token(token)
    if user_id is None or not hub.user_exists(user_id):
        logger.warning("Rejected realtime connection with an invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection_id = await hub.connect(websocket, user_id)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await hub.manager.send(connection_id, "error", {"message": "Malformed JSON"})
                continue
            await hub.dispatch(connection_id, message)
    except WebSocketDisconnect:
        logger.info(f"User {user_id} disconnected ({connection_id})")
    finally:
        await hub.disconnect(connection_id)
