"""Chat view state: message thread, unread badges and typing indicator.

A message the user sends is shown immediately with a client-generated
``temp_id``. When the relay echoes the stored message back as a
``newMessage`` event, the pending entry is replaced in place rather than
appended a second time.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

TYPING_TIMEOUT_SECONDS = 3.0


@dataclass(frozen=True)
class ChatMessage:
    sender_id: str
    receiver_id: str
    content: str
    timestamp: str
    id: str | None = None
    temp_id: str | None = None

    @property
    def pending(self) -> bool:
        return self.id is None and self.temp_id is not None

    @classmethod
    def from_event(cls, data: Mapping[str, Any]) -> ChatMessage:
        return cls(
            sender_id=str(data["senderId"]),
            receiver_id=str(data["receiverId"]),
            content=str(data["content"]),
            timestamp=str(data.get("timestamp") or ""),
            id=str(data["id"]) if data.get("id") is not None else None,
        )


@dataclass
class ChatThread:
    user_id: str
    contact_id: str
    messages: list[ChatMessage] = field(default_factory=list)

    def belongs(self, message: ChatMessage) -> bool:
        return (message.sender_id == self.user_id and message.receiver_id == self.contact_id) or (
            message.sender_id == self.contact_id and message.receiver_id == self.user_id
        )

    def load_history(self, history: Iterable[ChatMessage]) -> None:
        # Server history replaces whatever was shown, pending entries included.
        self.messages = [m for m in history if self.belongs(m)]

    def add_pending(self, content: str, *, now: datetime | None = None) -> ChatMessage:
        if not content or not content.strip():
            raise ValueError("Message content is required")
        message = ChatMessage(
            sender_id=self.user_id,
            receiver_id=self.contact_id,
            content=content,
            timestamp=(now or datetime.now(UTC)).isoformat(),
            temp_id=uuid.uuid4().hex,
        )
        self.messages.append(message)
        return message

    def apply_server_message(self, message: ChatMessage) -> bool:
        """Merge a confirmed message; returns True when the thread changed."""
        if not self.belongs(message):
            return False

        if message.sender_id == self.user_id:
            for idx, existing in enumerate(self.messages):
                if existing.pending and existing.content == message.content:
                    self.messages[idx] = replace(message, temp_id=existing.temp_id)
                    return True

        if message.id is not None and any(m.id == message.id for m in self.messages):
            return False

        self.messages.append(message)
        return True

    @property
    def pending_count(self) -> int:
        return sum(1 for m in self.messages if m.pending)


@dataclass
class UnreadCounter:
    user_id: str
    counts: dict[str, int] = field(default_factory=dict)

    def record(self, message: ChatMessage, *, open_contact_id: str | None) -> None:
        if message.receiver_id != self.user_id or message.sender_id == self.user_id:
            return
        if message.sender_id == open_contact_id:
            return
        self.counts[message.sender_id] = self.counts.get(message.sender_id, 0) + 1

    def clear(self, contact_id: str) -> None:
        self.counts.pop(contact_id, None)

    def badge(self, contact_id: str) -> int:
        return self.counts.get(contact_id, 0)


@dataclass
class TypingIndicator:
    timeout_seconds: float = TYPING_TIMEOUT_SECONDS
    clock: Callable[[], float] = time.monotonic
    _last_seen: dict[str, float] = field(default_factory=dict)

    def note(self, sender_id: str) -> None:
        self._last_seen[sender_id] = self.clock()

    def stop(self, sender_id: str) -> None:
        self._last_seen.pop(sender_id, None)

    def is_typing(self, sender_id: str) -> bool:
        seen = self._last_seen.get(sender_id)
        if seen is None:
            return False
        if self.clock() - seen >= self.timeout_seconds:
            del self._last_seen[sender_id]
            return False
        return True


@dataclass
class ChatView:
    """Everything the chat page holds for one signed-in user."""

    user_id: str
    thread: ChatThread | None = None
    unread: UnreadCounter = field(init=False)
    typing: TypingIndicator = field(default_factory=TypingIndicator)

    def __post_init__(self) -> None:
        self.unread = UnreadCounter(user_id=self.user_id)

    @property
    def open_contact_id(self) -> str | None:
        return self.thread.contact_id if self.thread is not None else None

    def open(self, contact_id: str, history: Iterable[ChatMessage] = ()) -> ChatThread:
        self.thread = ChatThread(user_id=self.user_id, contact_id=contact_id)
        self.thread.load_history(history)
        self.unread.clear(contact_id)
        return self.thread

    def on_event(self, event: str, data: Mapping[str, Any]) -> None:
        if event == "newMessage":
            message = ChatMessage.from_event(data)
            self.typing.stop(message.sender_id)
            if self.thread is not None and self.thread.belongs(message):
                self.thread.apply_server_message(message)
            else:
                self.unread.record(message, open_contact_id=self.open_contact_id)
        elif event == "typing":
            sender_id = str(data.get("senderId") or "")
            if sender_id and sender_id != self.user_id:
                self.typing.note(sender_id)
