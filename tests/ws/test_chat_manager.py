"""Unit tests for the community chat broadcaster."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketState

from fmbn.ws.manager import FOLLOWUP_MESSAGE, WELCOME_MESSAGE, ChatRegistry, CommunityChat


@pytest.fixture
def chat() -> CommunityChat:
    return CommunityChat(ChatRegistry(), followup_delay=0.01, reset_delay=0.05)


def _make_ws(*, fail_send: bool = False) -> AsyncMock:
    """Create a mock WebSocket that reports itself open."""
    ws = AsyncMock()
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    if fail_send:
        ws.send_text = AsyncMock(side_effect=RuntimeError("connection closed"))
    else:
        ws.send_text = AsyncMock()
    return ws


def _sent(ws: AsyncMock) -> list[dict[str, Any]]:
    return [json.loads(call.args[0]) for call in ws.send_text.await_args_list]


def _types(ws: AsyncMock) -> list[str]:
    return [m["type"] for m in _sent(ws)]


class TestJoin:
    async def test_first_join_gets_welcome_and_roster(self, chat: CommunityChat) -> None:
        ws = _make_ws()
        await chat.join(ws, "alice", "supporter", "Port of Spain")
        messages = _sent(ws)
        assert messages[0]["username"] == "System"
        assert messages[0]["message"] == WELCOME_MESSAGE
        assert messages[1] == {
            "type": "users_update",
            "users": [{"id": "alice", "username": "alice", "userType": "supporter", "location": "Port of Spain"}],
        }
        assert "user_joined" not in _types(ws)

    async def test_others_notified(self, chat: CommunityChat) -> None:
        alice, bob = _make_ws(), _make_ws()
        await chat.join(alice, "alice")
        await chat.join(bob, "bob")
        joined = [m for m in _sent(alice) if m["type"] == "user_joined"]
        assert joined == [{"type": "user_joined", "user": {"id": "bob", "username": "bob", "userType": "entrepreneur", "location": None}}]
        roster = [m for m in _sent(bob) if m["type"] == "users_update"][-1]
        assert [u["username"] for u in roster["users"]] == ["alice", "bob"]

    async def test_defaults(self, chat: CommunityChat) -> None:
        participant = await chat.join(_make_ws(), None, "wizard")
        assert participant.username.startswith("User")
        assert 0 <= int(participant.username[4:]) <= 999
        assert participant.user_type == "entrepreneur"

    async def test_same_username_replaces_old_socket(self, chat: CommunityChat) -> None:
        old, new = _make_ws(), _make_ws()
        await chat.join(old, "alice")
        await chat.join(new, "alice")
        old.close.assert_awaited_once()
        assert len(chat.registry) == 1
        assert chat.registry.get("alice").websocket is new

        # The evicted socket's disconnect must not remove its successor.
        assert await chat.leave("alice", old) is False
        assert chat.registry.get("alice").websocket is new


class TestWelcome:
    async def test_welcome_once_per_username(self, chat: CommunityChat) -> None:
        first = _make_ws()
        await chat.join(first, "alice")
        await chat.leave("alice", first)
        again = _make_ws()
        await chat.join(again, "alice")
        assert WELCOME_MESSAGE not in [m.get("message") for m in _sent(again)]

    async def test_welcome_again_after_reset(self, chat: CommunityChat) -> None:
        first = _make_ws()
        await chat.join(first, "alice")
        await chat.leave("alice", first)
        await asyncio.sleep(0.1)
        assert not chat.registry.is_welcomed("alice")
        again = _make_ws()
        await chat.join(again, "alice")
        assert _sent(again)[0]["message"] == WELCOME_MESSAGE

    async def test_rejoin_cancels_pending_reset(self, chat: CommunityChat) -> None:
        first = _make_ws()
        await chat.join(first, "alice")
        await chat.leave("alice", first)
        await chat.join(_make_ws(), "alice")
        await asyncio.sleep(0.1)
        assert chat.registry.is_welcomed("alice")

    async def test_followup_sent_after_delay(self, chat: CommunityChat) -> None:
        ws = _make_ws()
        await chat.join(ws, "alice")
        await asyncio.sleep(0.05)
        assert _sent(ws)[-1]["message"] == FOLLOWUP_MESSAGE

    async def test_followup_skipped_after_leave(self, chat: CommunityChat) -> None:
        ws = _make_ws()
        await chat.join(ws, "alice")
        await chat.leave("alice", ws)
        await asyncio.sleep(0.05)
        assert FOLLOWUP_MESSAGE not in [m.get("message") for m in _sent(ws)]


class TestMessages:
    async def test_post_reaches_everyone_including_sender(self, chat: CommunityChat) -> None:
        alice, bob = _make_ws(), _make_ws()
        await chat.join(alice, "alice", "premium")
        await chat.join(bob, "bob")
        message = await chat.post(alice, "alice", "Hello all")
        assert message is not None
        for ws in (alice, bob):
            received = [m for m in _sent(ws) if m.get("message") == "Hello all"]
            assert received == [message]
        assert message["userType"] == "premium"

    async def test_post_from_replaced_socket_ignored(self, chat: CommunityChat) -> None:
        old, new = _make_ws(), _make_ws()
        await chat.join(old, "alice")
        await chat.join(new, "alice")
        assert await chat.post(old, "alice", "stale") is None

    async def test_failed_send_drops_participant_silently(self, chat: CommunityChat) -> None:
        alice = _make_ws()
        await chat.join(alice, "alice")
        broken = _make_ws()
        await chat.join(broken, "bob")
        broken.send_text.side_effect = RuntimeError("gone")

        await chat.post(alice, "alice", "anyone there?")
        assert "bob" not in chat.registry
        assert "user_left" not in _types(alice)

    async def test_closed_socket_skipped(self, chat: CommunityChat) -> None:
        alice, bob = _make_ws(), _make_ws()
        await chat.join(alice, "alice")
        await chat.join(bob, "bob")
        bob.client_state = WebSocketState.DISCONNECTED
        before = bob.send_text.await_count
        sent = await chat.broadcast({"type": "community_message", "message": "x"})
        assert sent == 1
        assert bob.send_text.await_count == before

    async def test_leave_broadcasts(self, chat: CommunityChat) -> None:
        alice, bob = _make_ws(), _make_ws()
        await chat.join(alice, "alice")
        await chat.join(bob, "bob")
        assert await chat.leave("bob", bob) is True
        assert _sent(alice)[-1] == {"type": "user_left", "userId": "bob", "username": "bob"}
        assert len(chat.registry) == 1

    async def test_drop_is_silent(self, chat: CommunityChat) -> None:
        alice, bob = _make_ws(), _make_ws()
        await chat.join(alice, "alice")
        await chat.join(bob, "bob")
        count = alice.send_text.await_count
        assert chat.drop("bob", bob) is True
        assert alice.send_text.await_count == count
        assert chat.drop("bob", bob) is False


class TestFrames:
    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            json.dumps({"type": "dance"}),
            json.dumps({"type": "community_message", "message": "before join"}),
        ],
    )
    async def test_malformed_frames_dropped(self, chat: CommunityChat, raw: str) -> None:
        ws = _make_ws()
        assert await chat.handle_frame(ws, raw, None) is None
        ws.send_text.assert_not_awaited()
        ws.close.assert_not_awaited()

    async def test_join_then_message(self, chat: CommunityChat) -> None:
        ws = _make_ws()
        username = await chat.handle_frame(ws, json.dumps({"type": "join_community", "username": "alice"}), None)
        assert username == "alice"
        username = await chat.handle_frame(ws, json.dumps({"type": "community_message", "message": "hi"}), username)
        assert username == "alice"
        assert _sent(ws)[-1]["message"] == "hi"

    async def test_blank_message_dropped(self, chat: CommunityChat) -> None:
        ws = _make_ws()
        await chat.join(ws, "alice")
        count = ws.send_text.await_count
        await chat.handle_frame(ws, json.dumps({"type": "community_message", "message": "   "}), "alice")
        assert ws.send_text.await_count == count

    async def test_rename_leaves_old_name(self, chat: CommunityChat) -> None:
        ws, other = _make_ws(), _make_ws()
        await chat.join(other, "bob")
        await chat.handle_frame(ws, json.dumps({"type": "join_community", "username": "alice"}), None)
        await chat.handle_frame(ws, json.dumps({"type": "join_community", "username": "alicia"}), "alice")
        assert "alice" not in chat.registry
        assert "alicia" in chat.registry
        assert {"type": "user_left", "userId": "alice", "username": "alice"} in _sent(other)


async def test_shutdown_cancels_timers(chat: CommunityChat) -> None:
    ws = _make_ws()
    await chat.join(ws, "alice")
    await chat.leave("alice", ws)
    assert chat.get_stats()["pending_tasks"] >= 1
    await chat.shutdown()
    assert chat.get_stats() == {"participants": 0, "pending_tasks": 0}
