from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

from pydantic import field_validator

from repodash.models.enums import MessageStatus
from repodash.schemas.common import ApiModel


class MessageOut(ApiModel):
    id: UUID
    sender_id: str
    receiver_id: str
    content: str
    timestamp: datetime
    status: MessageStatus

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive datetimes; every timestamp we store is UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class SendMessagePayload(ApiModel):
    receiver_id: str
    content: str


class TypingPayload(ApiModel):
    receiver_id: str
    sender_id: str | None = None
