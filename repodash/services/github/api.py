from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"

REPO_STATS_RESOURCES = ("commits", "pulls", "issues", "contributors")


class GitHubApiError(RuntimeError):
    def __init__(self, *, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class GitHubUser:
    id: str
    login: str
    name: str | None
    email: str | None
    avatar_url: str | None
    bio: str | None
    followers: int
    following: int
    public_repos: int


@dataclass(frozen=True)
class GitHubRepo:
    id: str
    name: str
    full_name: str
    description: str | None
    html_url: str
    stargazers_count: int
    default_branch: str | None
    private: bool
    updated_at: str | None


@dataclass(frozen=True)
class GitHubAccount:
    id: str
    login: str
    avatar_url: str | None


def _headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}", "Accept": GITHUB_ACCEPT}


def _get_json(
    client: httpx.Client,
    url: str,
    *,
    access_token: str,
    params: dict[str, Any] | None = None,
) -> Any:
    res = client.get(url, headers=_headers(access_token), params=params)
    if res.status_code >= 400:
        raise GitHubApiError(
            status_code=res.status_code,
            message=f"GET {url} failed: HTTP {res.status_code}",
        )
    return res.json()


def get_user(
    client: httpx.Client, *, access_token: str, api_url: str = GITHUB_API_URL
) -> GitHubUser:
    payload = _get_json(client, f"{api_url}/user", access_token=access_token)
    return GitHubUser(
        id=str(payload["id"]),
        login=payload["login"],
        name=payload.get("name"),
        email=payload.get("email"),
        avatar_url=payload.get("avatar_url"),
        bio=payload.get("bio"),
        followers=int(payload.get("followers") or 0),
        following=int(payload.get("following") or 0),
        public_repos=int(payload.get("public_repos") or 0),
    )


def get_primary_email(
    client: httpx.Client, *, access_token: str, api_url: str = GITHUB_API_URL
) -> str | None:
    payload = _get_json(client, f"{api_url}/user/emails", access_token=access_token)
    if not isinstance(payload, list):
        return None
    for entry in payload:
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email")
    return None


def list_user_repos(
    client: httpx.Client,
    *,
    access_token: str,
    per_page: int,
    api_url: str = GITHUB_API_URL,
) -> list[GitHubRepo]:
    payload = _get_json(
        client,
        f"{api_url}/user/repos",
        access_token=access_token,
        params={"sort": "updated", "per_page": per_page},
    )
    if not isinstance(payload, list):
        raise GitHubApiError(status_code=502, message="repository list is not a JSON array")

    return [
        GitHubRepo(
            id=str(item["id"]),
            name=item["name"],
            full_name=item["full_name"],
            description=item.get("description"),
            html_url=item["html_url"],
            stargazers_count=int(item.get("stargazers_count") or 0),
            default_branch=item.get("default_branch"),
            private=bool(item.get("private")),
            updated_at=item.get("updated_at"),
        )
        for item in payload
    ]


def list_repo_resource(
    client: httpx.Client,
    *,
    access_token: str,
    full_name: str,
    resource: str,
    per_page: int,
    api_url: str = GITHUB_API_URL,
) -> Any:
    if resource not in REPO_STATS_RESOURCES:
        raise ValueError(f"unsupported repository resource: {resource}")
    return _get_json(
        client,
        f"{api_url}/repos/{full_name}/{resource}",
        access_token=access_token,
        params={"per_page": per_page},
    )


def _list_accounts(client: httpx.Client, url: str, *, access_token: str) -> list[GitHubAccount]:
    payload = _get_json(client, url, access_token=access_token)
    if not isinstance(payload, list):
        raise GitHubApiError(status_code=502, message=f"{url} is not a JSON array")
    return [
        GitHubAccount(id=str(item["id"]), login=item["login"], avatar_url=item.get("avatar_url"))
        for item in payload
    ]


def list_followers(
    client: httpx.Client, *, access_token: str, api_url: str = GITHUB_API_URL
) -> list[GitHubAccount]:
    return _list_accounts(client, f"{api_url}/user/followers", access_token=access_token)


def list_following(
    client: httpx.Client, *, access_token: str, api_url: str = GITHUB_API_URL
) -> list[GitHubAccount]:
    return _list_accounts(client, f"{api_url}/user/following", access_token=access_token)
