from __future__ import annotations

import enum


class MessageStatus(enum.StrEnum):
    sent = "sent"
    delivered = "delivered"
