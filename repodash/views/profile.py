from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from repodash.schemas.auth import UserOut
from repodash.schemas.repos import RepositoryOut


@dataclass(frozen=True)
class ProfileSummary:
    name: str
    email: str | None
    avatar: str | None
    provider: str
    followers: int
    following: int
    public_repos: int
    total_repos: int
    auto_reviewed_repos: int


def summarize_profile(user: UserOut, repos: Iterable[RepositoryOut]) -> ProfileSummary:
    repo_list = list(repos)
    return ProfileSummary(
        name=user.name,
        email=user.email,
        avatar=user.avatar,
        provider=user.provider,
        followers=user.followers,
        following=user.following,
        public_repos=user.public_repos,
        total_repos=len(repo_list),
        auto_reviewed_repos=sum(1 for r in repo_list if r.auto_review),
    )
