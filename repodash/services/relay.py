"""Real-time direct message relay.

Every authenticated connection joins the broadcast group named after its
user id, so all open sessions of one user receive the same events. Frames
are JSON objects of the form ``{"event": name, "data": payload}``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.websockets import WebSocketDisconnect

from repodash.core.metrics import observe_relay_event
from repodash.core.security import InvalidSessionToken, SessionPrincipal, decode_session_token
from repodash.schemas.messages import SendMessagePayload, TypingPayload
from repodash.services.messages import InvalidMessageError

logger = logging.getLogger("repodash.api")

EVENT_AUTHENTICATE = "authenticate"
EVENT_AUTHENTICATED = "authenticated"
EVENT_SEND_MESSAGE = "sendMessage"
EVENT_NEW_MESSAGE = "newMessage"
EVENT_TYPING = "typing"
EVENT_ERROR = "error"

# RFC 6455 policy violation.
CLOSE_POLICY_VIOLATION = 1008


class RelaySocket(Protocol):
    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class CloseConnection(Exception):
    def __init__(self, *, code: int, reason: str) -> None:
        super().__init__(reason)
        self.code = code
        self.reason = reason


PersistMessage = Callable[[str, str, str], Awaitable[dict[str, Any]]]


def frame(event: str, data: Any) -> dict[str, Any]:
    return {"event": event, "data": data}


class RelayHub:
    """Named broadcast groups of live sockets. Only touched from the event loop."""

    def __init__(self) -> None:
        self._groups: dict[str, set[RelaySocket]] = {}

    def join(self, group: str, socket: RelaySocket) -> None:
        self._groups.setdefault(group, set()).add(socket)

    def leave(self, group: str, socket: RelaySocket) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.discard(socket)
        if not members:
            del self._groups[group]

    async def emit(self, groups: Iterable[str], event: str, data: Any) -> int:
        targets: list[RelaySocket] = []
        seen: set[int] = set()
        for group in groups:
            for socket in self._groups.get(group, ()):
                if id(socket) in seen:
                    continue
                seen.add(id(socket))
                targets.append(socket)

        delivered = 0
        for socket in targets:
            try:
                await socket.send_json(frame(event, data))
                delivered += 1
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                # The socket's own receive loop removes it from its group on disconnect.
                logger.warning("relay emit of %s to a closing socket failed: %s", event, e)
        return delivered


@dataclass
class RelayConnection:
    socket: RelaySocket
    hub: RelayHub
    persist: PersistMessage
    authenticate: Callable[[str], SessionPrincipal] = decode_session_token
    user_id: str | None = field(default=None, init=False)

    @property
    def identified(self) -> bool:
        return self.user_id is not None

    async def send_error(self, message: str) -> None:
        await self.socket.send_json(frame(EVENT_ERROR, {"message": message}))

    async def handle(self, raw: Any) -> None:
        if not isinstance(raw, dict) or not isinstance(raw.get("event"), str):
            observe_relay_event(event="unknown", outcome="malformed")
            await self.send_error("Malformed frame")
            return

        event = raw["event"]
        data = raw.get("data")
        if event == EVENT_AUTHENTICATE:
            await self._on_authenticate(data)
        elif event == EVENT_SEND_MESSAGE:
            await self._on_send_message(data)
        elif event == EVENT_TYPING:
            await self._on_typing(data)
        else:
            observe_relay_event(event="unknown", outcome="rejected")
            await self.send_error(f"Unknown event: {event[:64]}")

    def disconnect(self) -> None:
        if self.user_id is not None:
            self.hub.leave(self.user_id, self.socket)

    async def _on_authenticate(self, data: Any) -> None:
        token = data.get("token") if isinstance(data, dict) else data
        if not isinstance(token, str) or not token:
            observe_relay_event(event=EVENT_AUTHENTICATE, outcome="rejected")
            await self.send_error("Authentication failed")
            raise CloseConnection(code=CLOSE_POLICY_VIOLATION, reason="Authentication failed")

        try:
            principal = self.authenticate(token)
        except InvalidSessionToken as e:
            logger.info("relay authentication rejected: %s", e)
            observe_relay_event(event=EVENT_AUTHENTICATE, outcome="rejected")
            await self.send_error("Authentication failed")
            raise CloseConnection(
                code=CLOSE_POLICY_VIOLATION, reason="Authentication failed"
            ) from e

        if self.user_id is not None and self.user_id != principal.id:
            self.hub.leave(self.user_id, self.socket)
        self.user_id = principal.id
        self.hub.join(principal.id, self.socket)
        observe_relay_event(event=EVENT_AUTHENTICATE, outcome="ok")
        logger.info("relay connection identified user_id=%s", principal.id)
        await self.socket.send_json(frame(EVENT_AUTHENTICATED, {"userId": principal.id}))

    async def _on_send_message(self, data: Any) -> None:
        if self.user_id is None:
            observe_relay_event(event=EVENT_SEND_MESSAGE, outcome="ignored")
            return

        try:
            payload = SendMessagePayload.model_validate(data)
        except ValidationError:
            observe_relay_event(event=EVENT_SEND_MESSAGE, outcome="rejected")
            await self.send_error("Invalid sendMessage payload")
            return

        try:
            message = await self.persist(self.user_id, payload.receiver_id, payload.content)
        except InvalidMessageError as e:
            observe_relay_event(event=EVENT_SEND_MESSAGE, outcome="rejected")
            await self.send_error(str(e))
            return
        except SQLAlchemyError as e:
            logger.warning("relay message from user_id=%s could not be stored: %s", self.user_id, e)
            observe_relay_event(event=EVENT_SEND_MESSAGE, outcome="failed")
            await self.send_error("Failed to send message")
            return

        observe_relay_event(event=EVENT_SEND_MESSAGE, outcome="ok")
        await self.hub.emit(
            [self.user_id, payload.receiver_id.strip()], EVENT_NEW_MESSAGE, message
        )

    async def _on_typing(self, data: Any) -> None:
        if self.user_id is None:
            observe_relay_event(event=EVENT_TYPING, outcome="ignored")
            return

        try:
            payload = TypingPayload.model_validate(data)
        except ValidationError:
            observe_relay_event(event=EVENT_TYPING, outcome="rejected")
            await self.send_error("Invalid typing payload")
            return

        observe_relay_event(event=EVENT_TYPING, outcome="ok")
        # The sender is always the authenticated user, whatever the client claims.
        await self.hub.emit(
            [payload.receiver_id],
            EVENT_TYPING,
            {"senderId": self.user_id, "receiverId": payload.receiver_id},
        )
