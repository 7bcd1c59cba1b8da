from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from repodash.services.github.api import GitHubApiError

GITHUB_OAUTH_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_OAUTH_TOKEN_URL = "https://github.com/login/oauth/access_token"


@dataclass(frozen=True)
class GitHubTokenResponse:
    access_token: str
    # Comma-delimited scopes the user actually granted.
    scope: str | None


def build_authorization_url(
    *,
    client_id: str,
    redirect_uri: str,
    scopes: list[str],
    state: str,
) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes),
        "state": state,
    }
    return f"{GITHUB_OAUTH_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code_for_token(
    client: httpx.Client,
    *,
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
) -> GitHubTokenResponse:
    res = client.post(
        GITHUB_OAUTH_TOKEN_URL,
        json={
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        },
        headers={"Accept": "application/json"},
    )
    if res.status_code >= 400:
        raise GitHubApiError(
            status_code=res.status_code, message=f"token exchange failed: HTTP {res.status_code}"
        )

    payload = res.json()
    # GitHub reports bad or reused codes with 200 and an `error` field.
    if payload.get("error") or not payload.get("access_token"):
        description = payload.get("error_description") or payload.get("error") or "no access token"
        raise GitHubApiError(status_code=res.status_code, message=f"token exchange failed: {description}")

    return GitHubTokenResponse(
        access_token=payload["access_token"],
        scope=payload.get("scope"),
    )
