from __future__ import annotations

import pytest

from repodash.views.chat import ChatMessage, ChatThread, ChatView, TypingIndicator


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _server(sender: str, receiver: str, content: str, message_id: str) -> dict:
    return {
        "id": message_id,
        "senderId": sender,
        "receiverId": receiver,
        "content": content,
        "timestamp": "2026-10-19T12:00:00+00:00",
        "status": "delivered",
    }


def test_pending_message_is_replaced_by_server_echo() -> None:
    thread = ChatThread(user_id="me", contact_id="you")
    pending = thread.add_pending("hello")
    assert pending.pending
    assert thread.pending_count == 1

    changed = thread.apply_server_message(ChatMessage.from_event(_server("me", "you", "hello", "m-1")))
    assert changed is True
    assert len(thread.messages) == 1
    confirmed = thread.messages[0]
    assert confirmed.id == "m-1"
    assert confirmed.temp_id == pending.temp_id
    assert not confirmed.pending
    assert thread.pending_count == 0

    # A duplicate delivery of the same stored message is dropped.
    assert thread.apply_server_message(ChatMessage.from_event(_server("me", "you", "hello", "m-1"))) is False
    assert len(thread.messages) == 1


def test_identical_pending_messages_reconcile_in_order() -> None:
    thread = ChatThread(user_id="me", contact_id="you")
    first = thread.add_pending("ok")
    second = thread.add_pending("ok")

    thread.apply_server_message(ChatMessage.from_event(_server("me", "you", "ok", "m-1")))
    assert [m.id for m in thread.messages] == ["m-1", None]
    assert thread.messages[0].temp_id == first.temp_id

    thread.apply_server_message(ChatMessage.from_event(_server("me", "you", "ok", "m-2")))
    assert [m.id for m in thread.messages] == ["m-1", "m-2"]
    assert thread.messages[1].temp_id == second.temp_id


def test_incoming_and_foreign_messages() -> None:
    thread = ChatThread(user_id="me", contact_id="you")
    assert thread.apply_server_message(ChatMessage.from_event(_server("you", "me", "yo", "m-9"))) is True
    assert thread.apply_server_message(ChatMessage.from_event(_server("other", "me", "psst", "m-10"))) is False
    assert [m.content for m in thread.messages] == ["yo"]


def test_blank_pending_message_is_rejected() -> None:
    thread = ChatThread(user_id="me", contact_id="you")
    with pytest.raises(ValueError):
        thread.add_pending("  ")
    assert thread.messages == []


def test_unread_badges_count_only_closed_conversations() -> None:
    view = ChatView(user_id="me")
    view.open("you")

    view.on_event("newMessage", _server("you", "me", "in open thread", "m-1"))
    view.on_event("newMessage", _server("carol", "me", "first", "m-2"))
    view.on_event("newMessage", _server("carol", "me", "second", "m-3"))

    assert view.unread.badge("you") == 0
    assert view.unread.badge("carol") == 2
    assert [m.content for m in view.thread.messages] == ["in open thread"]

    view.open("carol", [ChatMessage.from_event(_server("carol", "me", "first", "m-2"))])
    assert view.unread.badge("carol") == 0
    assert [m.id for m in view.thread.messages] == ["m-2"]


def test_typing_indicator_expires_and_stops_on_message() -> None:
    clock = FakeClock()
    view = ChatView(user_id="me", typing=TypingIndicator(clock=clock))
    view.open("you")

    view.on_event("typing", {"senderId": "you", "receiverId": "me"})
    assert view.typing.is_typing("you")

    clock.now += 2.9
    assert view.typing.is_typing("you")
    clock.now += 0.2
    assert not view.typing.is_typing("you")

    view.on_event("typing", {"senderId": "you", "receiverId": "me"})
    view.on_event("newMessage", _server("you", "me", "done typing", "m-5"))
    assert not view.typing.is_typing("you")

    # Our own typing echo never shows an indicator.
    view.on_event("typing", {"senderId": "me", "receiverId": "you"})
    assert not view.typing.is_typing("me")
