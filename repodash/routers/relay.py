from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from repodash.core.config import get_settings
from repodash.core.metrics import (
    relay_connection_closed,
    relay_connection_identified,
    relay_connection_opened,
)
from repodash.db.session import session_scope
from repodash.schemas.messages import MessageOut
from repodash.services.messages import create_message
from repodash.services.relay import CloseConnection, RelayConnection, RelayHub

logger = logging.getLogger("repodash.api")

router = APIRouter(tags=["relay"])


def _store_message(sender_id: str, receiver_id: str, content: str) -> dict[str, Any]:
    with session_scope() as session:
        message = create_message(
            session=session,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            max_length=get_settings().MESSAGE_MAX_LENGTH,
        )
        payload = MessageOut.model_validate(message).model_dump(mode="json", by_alias=True)
    return payload


async def _persist_message(sender_id: str, receiver_id: str, content: str) -> dict[str, Any]:
    return await run_in_threadpool(_store_message, sender_id, receiver_id, content)


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket) -> None:
    hub: RelayHub = websocket.app.state.relay_hub
    await websocket.accept()
    conn = RelayConnection(socket=websocket, hub=hub, persist=_persist_message)
    relay_connection_opened()
    logger.info("relay connection opened")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
            except ValueError:
                await conn.send_error("Malformed frame")
                continue

            was_identified = conn.identified
            await conn.handle(payload)
            if conn.identified and not was_identified:
                relay_connection_identified()
    except WebSocketDisconnect as e:
        logger.info("relay connection disconnected user_id=%s code=%s", conn.user_id, e.code)
    except CloseConnection as e:
        logger.info("relay connection closed by server: %s", e.reason)
        await websocket.close(code=e.code, reason=e.reason)
    finally:
        conn.disconnect()
        relay_connection_closed(identified=conn.identified)
