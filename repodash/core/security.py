from __future__ import annotations

import base64
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from cryptography.exceptions import InvalidTag

from repodash.core.config import get_settings
from repodash.core.crypto import seal_text, unseal_text

SESSION_TOKEN_ALGORITHM = "HS256"
SESSION_TOKEN_ISSUER = "repodash"


class InvalidSessionToken(ValueError):
    pass


def new_random_token(*, nbytes: int = 32) -> str:
    raw = os.urandom(nbytes)
    # URL-safe base64 without padding to keep query strings and headers compact.
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class SessionPrincipal:
    """The authenticated GitHub user carried inside a session token.

    The upstream access token travels with the principal so request handlers can
    call GitHub on the user's behalf without a server-side session store. It is
    sealed with AES-GCM inside the token and never serialized back to clients.
    """

    id: str
    username: str
    name: str
    email: str | None
    avatar: str | None
    bio: str | None
    followers: int
    following: int
    public_repos: int
    provider: str
    access_token: str = field(repr=False)


def _access_token_aad(user_id: str) -> bytes:
    return f"session:{user_id}:access_token".encode()


def issue_session_token(principal: SessionPrincipal, *, now: datetime | None = None) -> str:
    settings = get_settings()
    issued_at = now or datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": principal.id,
        "username": principal.username,
        "name": principal.name,
        "email": principal.email,
        "avatar": principal.avatar,
        "bio": principal.bio,
        "followers": principal.followers,
        "following": principal.following,
        "public_repos": principal.public_repos,
        "provider": principal.provider,
        "gat": seal_text(plaintext=principal.access_token, aad=_access_token_aad(principal.id)),
        "iss": SESSION_TOKEN_ISSUER,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=settings.SESSION_TTL_SECONDS),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=SESSION_TOKEN_ALGORITHM)


def decode_session_token(token: str) -> SessionPrincipal:
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[SESSION_TOKEN_ALGORITHM],
            issuer=SESSION_TOKEN_ISSUER,
            options={"require": ["sub", "exp", "gat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidSessionToken("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidSessionToken(f"Invalid token: {e}") from e

    user_id = str(claims["sub"])
    try:
        access_token = unseal_text(sealed=str(claims["gat"]), aad=_access_token_aad(user_id))
    except (InvalidTag, ValueError) as e:
        raise InvalidSessionToken("Invalid token: sealed credential rejected") from e

    return SessionPrincipal(
        id=user_id,
        username=str(claims.get("username") or ""),
        name=str(claims.get("name") or claims.get("username") or ""),
        email=claims.get("email"),
        avatar=claims.get("avatar"),
        bio=claims.get("bio"),
        followers=int(claims.get("followers") or 0),
        following=int(claims.get("following") or 0),
        public_repos=int(claims.get("public_repos") or 0),
        provider=str(claims.get("provider") or "github"),
        access_token=access_token,
    )


def bearer_token_from_header(value: str | None) -> str | None:
    if not value:
        return None
    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None
