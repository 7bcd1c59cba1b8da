from __future__ import annotations

import json
from collections.abc import Callable, Generator
from typing import Any

import httpx
from fastapi import FastAPI

from repodash.core.security import SessionPrincipal, issue_session_token

Handler = Callable[[httpx.Request], httpx.Response]

API = "https://api.github.com"


def install_github_mock(app: FastAPI, handler: Handler) -> httpx.Client:
    from repodash.core.http import get_http_client

    http_client = httpx.Client(transport=httpx.MockTransport(handler), timeout=10.0)

    def override_http_client() -> Generator[httpx.Client, None, None]:
        yield http_client

    app.dependency_overrides[get_http_client] = override_http_client
    return http_client


def make_principal(
    user_id: str = "1001",
    *,
    username: str = "octocat",
    access_token: str = "gho_test_access_token",
) -> SessionPrincipal:
    return SessionPrincipal(
        id=user_id,
        username=username,
        name=username.title(),
        email=f"{username}@example.com",
        avatar=f"https://avatars.githubusercontent.com/u/{user_id}",
        bio=None,
        followers=3,
        following=2,
        public_repos=5,
        provider="github",
        access_token=access_token,
    )


def bearer_for(user_id: str = "1001", **kwargs: Any) -> dict[str, str]:
    token = issue_session_token(make_principal(user_id, **kwargs))
    return {"Authorization": f"Bearer {token}"}


def github_repo(
    repo_id: int,
    name: str,
    *,
    owner: str = "octocat",
    stars: int = 0,
    private: bool = False,
    description: str | None = None,
    updated_at: str = "2026-01-01T00:00:00Z",
) -> dict[str, Any]:
    return {
        "id": repo_id,
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": description,
        "html_url": f"https://github.com/{owner}/{name}",
        "clone_url": f"https://github.com/{owner}/{name}.git",
        "stargazers_count": stars,
        "default_branch": "main",
        "private": private,
        "updated_at": updated_at,
    }


def json_body(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content.decode("utf-8"))
