"""Community chat broadcaster.

Participants are keyed by username: joining under a name that is already
connected closes the older socket and replaces it. All registry changes
happen on the event loop, so they never interleave mid-update.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
import uuid
from collections.abc import Coroutine
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = structlog.get_logger()

USER_TYPES = {"entrepreneur", "supporter", "premium"}
DEFAULT_USER_TYPE = "entrepreneur"
SYSTEM_USERNAME = "System"
WELCOME_MESSAGE = "Hello. Welcome to FindMyBizName."
FOLLOWUP_MESSAGE = "Be sure to give us some feedback about your experience before leaving."


@dataclass
class Participant:
    """A connected chat member."""

    websocket: WebSocket
    username: str
    user_type: str = DEFAULT_USER_TYPE
    location: str | None = None
    joined_at: float = field(default_factory=time.time)

    def public(self) -> dict[str, Any]:
        return {
            "id": self.username,
            "username": self.username,
            "userType": self.user_type,
            "location": self.location,
        }


class ChatRegistry:
    """Username -> participant map plus the set of already-welcomed usernames."""

    def __init__(self) -> None:
        self._participants: dict[str, Participant] = {}
        self._welcomed: set[str] = set()

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, username: object) -> bool:
        return username in self._participants

    def get(self, username: str) -> Participant | None:
        return self._participants.get(username)

    def add(self, participant: Participant) -> Participant | None:
        """Register ``participant``; returns whoever held the username before."""
        previous = self._participants.get(participant.username)
        self._participants[participant.username] = participant
        return previous

    def remove(self, username: str, websocket: WebSocket | None = None) -> Participant | None:
        """Unregister ``username``.

        With ``websocket`` given, only removes the entry if it still belongs to
        that socket, so a replaced connection cannot evict its successor.
        """
        participant = self._participants.get(username)
        if participant is None:
            return None
        if websocket is not None and participant.websocket is not websocket:
            return None
        return self._participants.pop(username)

    def participants(self) -> list[Participant]:
        return list(self._participants.values())

    def mark_welcomed(self, username: str) -> bool:
        """Returns True the first time a username is marked."""
        if username in self._welcomed:
            return False
        self._welcomed.add(username)
        return True

    def is_welcomed(self, username: str) -> bool:
        return username in self._welcomed

    def forget_welcome(self, username: str) -> None:
        self._welcomed.discard(username)


def is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def system_message(text: str) -> dict[str, Any]:
    return {
        "type": "community_message",
        "id": uuid.uuid4().hex,
        "username": SYSTEM_USERNAME,
        "message": text,
        "timestamp": _timestamp(),
        "userType": "supporter",
    }


class CommunityChat:
    """Join/replace/leave handling and fan-out over a :class:`ChatRegistry`."""

    def __init__(
        self,
        registry: ChatRegistry | None = None,
        followup_delay: float = 2.0,
        reset_delay: float = 300.0,
    ) -> None:
        self.registry = registry if registry is not None else ChatRegistry()
        self.followup_delay = followup_delay
        self.reset_delay = reset_delay
        self._tasks: set[asyncio.Task[None]] = set()
        self._welcome_resets: dict[str, asyncio.Task[None]] = {}

    # --- Delivery ---

    async def send(self, participant: Participant, message: dict[str, Any]) -> bool:
        """Unicast. Closed sockets are skipped; a failed send drops the participant."""
        if not is_open(participant.websocket):
            return False
        try:
            await participant.websocket.send_text(json.dumps(message))
        except Exception:
            logger.warning("chat_send_failed", username=participant.username)
            self.registry.remove(participant.username, participant.websocket)
            return False
        return True

    async def broadcast(self, message: dict[str, Any], exclude: str | None = None) -> int:
        """Send to every participant except ``exclude``, in registry order. Returns the delivery count."""
        sent = 0
        for participant in self.registry.participants():
            if participant.username == exclude:
                continue
            if await self.send(participant, message):
                sent += 1
        return sent

    # --- Background timers ---

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send_followup(self, participant: Participant) -> None:
        await asyncio.sleep(self.followup_delay)
        if self.registry.get(participant.username) is participant:
            await self.send(participant, system_message(FOLLOWUP_MESSAGE))

    async def _reset_welcome(self, username: str) -> None:
        await asyncio.sleep(self.reset_delay)
        self.registry.forget_welcome(username)
        self._welcome_resets.pop(username, None)

    # --- Protocol ---

    async def join(
        self,
        websocket: WebSocket,
        username: str | None = None,
        user_type: str | None = None,
        location: str | None = None,
    ) -> Participant:
        username = (username or "").strip() or f"User{random.randint(0, 999)}"
        if user_type not in USER_TYPES:
            user_type = DEFAULT_USER_TYPE
        participant = Participant(websocket=websocket, username=username, user_type=user_type, location=location)

        previous = self.registry.add(participant)
        if previous is not None and previous.websocket is not websocket:
            logger.info("chat_session_replaced", username=username)
            try:
                await previous.websocket.close()
            except Exception:
                logger.debug("chat_close_failed", username=username)

        pending_reset = self._welcome_resets.pop(username, None)
        if pending_reset is not None:
            pending_reset.cancel()

        if self.registry.mark_welcomed(username):
            await self.send(participant, system_message(WELCOME_MESSAGE))
            self._spawn(self._send_followup(participant))

        await self.broadcast({"type": "user_joined", "user": participant.public()}, exclude=username)
        await self.send(
            participant,
            {"type": "users_update", "users": [p.public() for p in self.registry.participants()]},
        )
        logger.info("chat_joined", username=username, participants=len(self.registry))
        return participant

    async def post(self, websocket: WebSocket, username: str, text: str) -> dict[str, Any] | None:
        """Broadcast a chat line from ``username`` to everyone, sender included."""
        sender = self.registry.get(username)
        if sender is None or sender.websocket is not websocket:
            return None
        message = {
            "type": "community_message",
            "id": uuid.uuid4().hex,
            "username": sender.username,
            "message": text,
            "timestamp": _timestamp(),
            "userType": sender.user_type,
        }
        await self.broadcast(message)
        return message

    async def leave(self, username: str, websocket: WebSocket) -> bool:
        """Orderly disconnect: unregister, tell the others, forget the welcome later."""
        participant = self.registry.remove(username, websocket)
        if participant is None:
            return False
        self._welcome_resets[username] = self._spawn(self._reset_welcome(username))
        await self.broadcast({"type": "user_left", "userId": username, "username": username})
        logger.info("chat_left", username=username, participants=len(self.registry))
        return True

    def drop(self, username: str, websocket: WebSocket) -> bool:
        """Transport failure: unregister without telling anyone."""
        return self.registry.remove(username, websocket) is not None

    async def handle_frame(self, websocket: WebSocket, raw: str, username: str | None) -> str | None:
        """Apply one inbound text frame. Returns the username bound to this socket afterwards.

        Malformed frames are logged and ignored; the socket stays open.
        """
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("chat_frame_dropped", reason="invalid_json")
            return username
        if not isinstance(frame, dict):
            logger.warning("chat_frame_dropped", reason="not_an_object")
            return username

        kind = frame.get("type")
        if kind == "join_community":
            if username is not None and username != frame.get("username"):
                await self.leave(username, websocket)
            participant = await self.join(
                websocket,
                username=frame.get("username"),
                user_type=frame.get("userType"),
                location=frame.get("location"),
            )
            return participant.username

        if kind == "community_message":
            text = frame.get("message")
            if username is None or not isinstance(text, str) or not text.strip():
                logger.warning("chat_frame_dropped", reason="message_without_join_or_text", username=username)
                return username
            await self.post(websocket, username, text)
            return username

        logger.warning("chat_frame_dropped", reason="unknown_type", type=kind)
        return username

    def get_stats(self) -> dict[str, int]:
        return {
            "participants": len(self.registry),
            "pending_tasks": len(self._tasks),
        }

    async def shutdown(self) -> None:
        """Cancel pending follow-ups and welcome resets."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._welcome_resets.clear()
