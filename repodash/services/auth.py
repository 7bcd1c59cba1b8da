from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx
from fastapi import HTTPException, status
from sqlalchemy import delete
from sqlalchemy.orm import Session

from repodash.core.config import get_settings
from repodash.core.crypto import EncryptionKeyError
from repodash.core.security import SessionPrincipal, issue_session_token, new_random_token
from repodash.models.oauth import OAuthState
from repodash.services.github.api import GitHubApiError, get_primary_email, get_user
from repodash.services.github.oauth import build_authorization_url, exchange_code_for_token

logger = logging.getLogger("repodash.api")

PROVIDER_GITHUB = "github"


@dataclass(frozen=True)
class LoginStart:
    auth_url: str
    state: str


@dataclass(frozen=True)
class LoginResult:
    token: str
    principal: SessionPrincipal


def purge_expired_states(*, session: Session, now: datetime) -> int:
    result = session.execute(delete(OAuthState).where(OAuthState.expires_at <= now))
    return result.rowcount or 0


def start_github_login(*, session: Session) -> LoginStart:
    settings = get_settings()
    if not settings.github_oauth_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitHub OAuth is not configured",
        )

    now = datetime.now(UTC)
    purge_expired_states(session=session, now=now)

    state = new_random_token()
    session.add(
        OAuthState(
            state=state,
            provider=PROVIDER_GITHUB,
            created_at=now,
            expires_at=now + timedelta(seconds=settings.OAUTH_STATE_TTL_SECONDS),
        )
    )
    session.flush()
    logger.info("oauth state issued for provider=%s", PROVIDER_GITHUB)

    url = build_authorization_url(
        client_id=settings.GITHUB_CLIENT_ID,
        redirect_uri=settings.GITHUB_REDIRECT_URI,
        scopes=settings.github_scopes,
        state=state,
    )
    return LoginStart(auth_url=url, state=state)


def consume_state(*, session: Session, state: str, now: datetime) -> bool:
    # A single conditional delete: concurrent callbacks with the same state cannot both win,
    # and an expired row never matches.
    result = session.execute(
        delete(OAuthState).where(
            OAuthState.state == state,
            OAuthState.provider == PROVIDER_GITHUB,
            OAuthState.expires_at > now,
        )
    )
    return (result.rowcount or 0) == 1


def complete_github_login(
    *,
    session: Session,
    http_client: httpx.Client,
    code: str | None,
    state: str | None,
) -> LoginResult:
    settings = get_settings()

    if not state or not state.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing state parameter")
    if not code or not code.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing OAuth code")

    if not consume_state(session=session, state=state, now=datetime.now(UTC)):
        logger.warning("oauth callback rejected: unknown, expired or reused state")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid state parameter")

    # One-time use even if the upstream exchange below fails.
    session.commit()

    try:
        token = exchange_code_for_token(
            http_client,
            code=code,
            client_id=settings.GITHUB_CLIENT_ID,
            client_secret=settings.GITHUB_CLIENT_SECRET,
            redirect_uri=settings.GITHUB_REDIRECT_URI,
        )
    except (GitHubApiError, httpx.HTTPError, ValueError) as e:
        logger.warning("github token exchange failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication failed"
        ) from e

    logger.info("github token exchanged, granted scope=%s", token.scope or "")

    try:
        user = get_user(http_client, access_token=token.access_token, api_url=settings.GITHUB_API_URL)
    except (GitHubApiError, httpx.HTTPError, KeyError, ValueError) as e:
        logger.warning("github profile fetch failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch user profile"
        ) from e

    email = user.email
    if not email:
        try:
            email = get_primary_email(
                http_client, access_token=token.access_token, api_url=settings.GITHUB_API_URL
            )
        except (GitHubApiError, httpx.HTTPError, ValueError) as e:
            # The profile is still usable without an address.
            logger.info("github primary email lookup failed: %s", e)
            email = None

    principal = SessionPrincipal(
        id=user.id,
        username=user.login,
        name=user.name or user.login,
        email=email,
        avatar=user.avatar_url,
        bio=user.bio,
        followers=user.followers,
        following=user.following,
        public_repos=user.public_repos,
        provider=PROVIDER_GITHUB,
        access_token=token.access_token,
    )

    try:
        session_token = issue_session_token(principal)
    except EncryptionKeyError as e:
        logger.error("session token could not be sealed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server encryption key is not configured",
        ) from e

    logger.info("github login completed for user_id=%s", principal.id)
    return LoginResult(token=session_token, principal=principal)
