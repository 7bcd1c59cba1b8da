from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from repodash.core.config import get_settings
from repodash.models.repos import Repository
from repodash.services.github.api import (
    REPO_STATS_RESOURCES,
    GitHubApiError,
    GitHubRepo,
    list_repo_resource,
    list_user_repos,
)

logger = logging.getLogger("repodash.api")

UNKNOWN_LAST_COMMIT = "Unknown"


@dataclass(frozen=True)
class RepoStats:
    commit_count: int
    pull_requests: int
    open_issues: int
    contributors: int
    last_commit: str


def get_repository(*, session: Session, repo_id: str) -> Repository:
    repo = session.get(Repository, repo_id)
    if repo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Repository not found")
    return repo


def upsert_repository(*, session: Session, upstream: GitHubRepo, now: datetime) -> Repository:
    repo = session.get(Repository, upstream.id)
    if repo is None:
        repo = Repository(id=upstream.id, auto_review=False)
        session.add(repo)

    # Everything except auto_review is owned by upstream.
    repo.name = upstream.name
    repo.full_name = upstream.full_name
    repo.description = upstream.description
    repo.url = upstream.html_url
    repo.stars = upstream.stargazers_count
    repo.default_branch = upstream.default_branch
    repo.private = upstream.private
    repo.updated_at = upstream.updated_at
    repo.synced_at = now
    session.flush()
    return repo


def sync_user_repositories(
    *,
    session: Session,
    http_client: httpx.Client,
    access_token: str,
) -> list[Repository]:
    settings = get_settings()
    try:
        upstream = list_user_repos(
            http_client,
            access_token=access_token,
            per_page=settings.GITHUB_PAGE_SIZE,
            api_url=settings.GITHUB_API_URL,
        )
    except (GitHubApiError, httpx.HTTPError, KeyError, ValueError) as e:
        logger.warning("github repository list failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch repositories",
        ) from e

    now = datetime.now(UTC)
    return [upsert_repository(session=session, upstream=item, now=now) for item in upstream]


def toggle_auto_review(*, session: Session, repo_id: str) -> bool:
    repo = get_repository(session=session, repo_id=repo_id)
    repo.auto_review = not repo.auto_review
    session.add(repo)
    session.flush()
    logger.info("auto review toggled repo_id=%s auto_review=%s", repo_id, repo.auto_review)
    return repo.auto_review


def _count_items(payload: Any) -> int:
    return len(payload) if isinstance(payload, list) else 0


def _last_commit_date(commits: Any) -> str:
    if not isinstance(commits, list) or not commits:
        return UNKNOWN_LAST_COMMIT
    try:
        return str(commits[0]["commit"]["author"]["date"])
    except (KeyError, TypeError):
        return UNKNOWN_LAST_COMMIT


def fetch_repo_stats(
    *,
    session: Session,
    http_client: httpx.Client,
    access_token: str,
    repo_id: str,
) -> RepoStats:
    settings = get_settings()
    repo = get_repository(session=session, repo_id=repo_id)

    def fetch(resource: str) -> Any:
        try:
            return list_repo_resource(
                http_client,
                access_token=access_token,
                full_name=repo.full_name,
                resource=resource,
                per_page=settings.GITHUB_PAGE_SIZE,
                api_url=settings.GITHUB_API_URL,
            )
        except (GitHubApiError, httpx.HTTPError, ValueError) as e:
            # A failed sub-call counts as zero instead of failing the whole response.
            logger.warning("github %s fetch failed for %s: %s", resource, repo.full_name, e)
            return None

    with ThreadPoolExecutor(max_workers=len(REPO_STATS_RESOURCES)) as pool:
        commits, pulls, issues, contributors = pool.map(fetch, REPO_STATS_RESOURCES)

    return RepoStats(
        commit_count=_count_items(commits),
        pull_requests=_count_items(pulls),
        open_issues=_count_items(issues),
        contributors=_count_items(contributors),
        last_commit=_last_commit_date(commits),
    )
