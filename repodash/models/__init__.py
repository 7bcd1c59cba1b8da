from __future__ import annotations

from repodash.models.base import Base as Base  # noqa: F401
from repodash.models.enums import MessageStatus  # noqa: F401
from repodash.models.messages import Message  # noqa: F401
from repodash.models.oauth import OAuthState  # noqa: F401
from repodash.models.repos import Repository  # noqa: F401
