from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from repodash.models.enums import MessageStatus
from repodash.models.messages import Message


class InvalidMessageError(ValueError):
    pass


def create_message(
    *,
    session: Session,
    sender_id: str,
    receiver_id: str,
    content: str,
    max_length: int,
) -> Message:
    receiver = (receiver_id or "").strip()
    if not receiver:
        raise InvalidMessageError("Receiver is required")
    if not content or not content.strip():
        raise InvalidMessageError("Message content is required")
    if len(content) > max_length:
        raise InvalidMessageError(f"Message content exceeds {max_length} characters")

    message = Message(
        sender_id=sender_id,
        receiver_id=receiver,
        content=content,
        timestamp=datetime.now(UTC),
        # Relay-created messages are delivered by construction.
        status=MessageStatus.delivered,
    )
    session.add(message)
    session.flush()
    return message


def list_conversation(*, session: Session, user_id: str, other_id: str) -> Sequence[Message]:
    return (
        session.execute(
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == other_id),
                    and_(Message.sender_id == other_id, Message.receiver_id == user_id),
                )
            )
            .order_by(Message.timestamp.asc())
        )
        .scalars()
        .all()
    )
