from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from repodash.models.base import Base
from repodash.models.enums import MessageStatus


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("messages_conversation_idx", "sender_id", "receiver_id", "timestamp"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sender_id: Mapped[str] = mapped_column(Text, nullable=False)
    receiver_id: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[MessageStatus] = mapped_column(
        Enum(MessageStatus, name="message_status", native_enum=False, length=16),
        nullable=False,
        default=MessageStatus.delivered,
    )
