from __future__ import annotations

from repodash.schemas.common import ApiModel


class RepositoryOut(ApiModel):
    id: str
    name: str
    full_name: str
    description: str | None = None
    url: str
    stars: int = 0
    default_branch: str | None = None
    private: bool = False
    updated_at: str | None = None
    auto_review: bool = False


class ToggleAutoReviewResponse(ApiModel):
    message: str
    auto_review: bool


class RepoStatsResponse(ApiModel):
    commit_count: int
    pull_requests: int
    open_issues: int
    contributors: int
    last_commit: str


class RepoLinesResponse(ApiModel):
    total_lines: int
