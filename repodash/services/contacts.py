from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import httpx
from fastapi import HTTPException, status

from repodash.core.config import get_settings
from repodash.services.github.api import (
    GitHubAccount,
    GitHubApiError,
    list_followers,
    list_following,
)

logger = logging.getLogger("repodash.api")


@dataclass(frozen=True)
class Contact:
    id: str
    username: str
    avatar: str | None


def merge_contacts(*lists: Iterable[GitHubAccount]) -> list[Contact]:
    """Concatenate account lists and drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    merged: list[Contact] = []
    for accounts in lists:
        for account in accounts:
            if account.id in seen:
                continue
            seen.add(account.id)
            merged.append(Contact(id=account.id, username=account.login, avatar=account.avatar_url))
    return merged


def fetch_contacts(*, http_client: httpx.Client, access_token: str) -> list[Contact]:
    settings = get_settings()
    try:
        followers = list_followers(
            http_client, access_token=access_token, api_url=settings.GITHUB_API_URL
        )
        following = list_following(
            http_client, access_token=access_token, api_url=settings.GITHUB_API_URL
        )
    except (GitHubApiError, httpx.HTTPError, KeyError, ValueError) as e:
        logger.warning("github contacts fetch failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch contacts"
        ) from e
    return merge_contacts(followers, following)
