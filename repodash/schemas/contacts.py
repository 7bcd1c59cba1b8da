from __future__ import annotations

from repodash.schemas.common import ApiModel


class ContactOut(ApiModel):
    id: str
    username: str
    avatar: str | None = None
