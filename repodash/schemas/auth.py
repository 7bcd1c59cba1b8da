from __future__ import annotations

from repodash.schemas.common import ApiModel


class LoginStartResponse(ApiModel):
    auth_url: str
    state: str


class OAuthCallbackRequest(ApiModel):
    # Both optional so a missing state is reported as a 400, not a validation error.
    code: str | None = None
    state: str | None = None


class UserOut(ApiModel):
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


class LoginResponse(ApiModel):
    token: str
    user: UserOut
