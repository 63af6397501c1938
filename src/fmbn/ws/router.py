"""Community chat WebSocket endpoint."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import structlog

from fmbn.ws.manager import CommunityChat

logger = structlog.get_logger()

router = APIRouter()


@router.websocket("/ws")
async def community_chat(websocket: WebSocket) -> None:
    """Single chat endpoint. JSON text frames tagged by ``type``.

    Protocol:
        Client -> Server:
            {"type": "join_community", "username": "Alice", "userType": "entrepreneur", "location": "..."}
            {"type": "community_message", "message": "Hi all"}

        Server -> Client:
            {"type": "community_message", "id": "...", "username": "...", "message": "...",
             "timestamp": "...", "userType": "..."}
            {"type": "user_joined", "user": {...}}
            {"type": "user_left", "userId": "...", "username": "..."}
            {"type": "users_update", "users": [...]}
    """
    chat: CommunityChat = websocket.app.state.chat
    await websocket.accept()
    username: str | None = None

    try:
        while True:
            raw = await websocket.receive_text()
            username = await chat.handle_frame(websocket, raw, username)
    except WebSocketDisconnect:
        if username is not None:
            await chat.leave(username, websocket)
    except Exception:
        logger.exception("chat_ws_error", username=username)
        if username is not None:
            chat.drop(username, websocket)
