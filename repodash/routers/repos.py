from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from repodash.core.deps import get_line_counter, require_principal
from repodash.core.http import get_http_client
from repodash.core.security import SessionPrincipal
from repodash.db.session import get_session
from repodash.schemas.repos import (
    RepoLinesResponse,
    RepositoryOut,
    RepoStatsResponse,
    ToggleAutoReviewResponse,
)
from repodash.services.line_count import CloneError, CountError, LineCounter
from repodash.services.repos import (
    fetch_repo_stats,
    get_repository,
    sync_user_repositories,
    toggle_auto_review,
)

logger = logging.getLogger("repodash.api")

router = APIRouter(prefix="/api/repos", tags=["repos"])


@router.get("", response_model=list[RepositoryOut])
def repos_list(
    principal: SessionPrincipal = Depends(require_principal),
    session: Session = Depends(get_session),
    http_client: httpx.Client = Depends(get_http_client),
) -> list[RepositoryOut]:
    repos = sync_user_repositories(
        session=session, http_client=http_client, access_token=principal.access_token
    )
    session.commit()
    return repos


@router.post("/{repo_id}/toggle-auto-review", response_model=ToggleAutoReviewResponse)
def repos_toggle_auto_review(
    repo_id: str,
    principal: SessionPrincipal = Depends(require_principal),
    session: Session = Depends(get_session),
) -> ToggleAutoReviewResponse:
    auto_review = toggle_auto_review(session=session, repo_id=repo_id)
    session.commit()
    return ToggleAutoReviewResponse(message="Auto Review status updated", auto_review=auto_review)


@router.get("/{repo_id}/stats", response_model=RepoStatsResponse)
def repos_stats(
    repo_id: str,
    principal: SessionPrincipal = Depends(require_principal),
    session: Session = Depends(get_session),
    http_client: httpx.Client = Depends(get_http_client),
) -> RepoStatsResponse:
    stats = fetch_repo_stats(
        session=session,
        http_client=http_client,
        access_token=principal.access_token,
        repo_id=repo_id,
    )
    return RepoStatsResponse(
        commit_count=stats.commit_count,
        pull_requests=stats.pull_requests,
        open_issues=stats.open_issues,
        contributors=stats.contributors,
        last_commit=stats.last_commit,
    )


@router.get("/{repo_id}/lines", response_model=RepoLinesResponse)
def repos_lines(
    repo_id: str,
    principal: SessionPrincipal = Depends(require_principal),
    session: Session = Depends(get_session),
    line_counter: LineCounter = Depends(get_line_counter),
) -> RepoLinesResponse:
    clone_url = get_repository(session=session, repo_id=repo_id).url
    # Release the DB connection before the long clone.
    session.close()
    try:
        total = line_counter.count_lines(clone_url=clone_url, access_token=principal.access_token)
    except CloneError as e:
        logger.warning("line count clone failed for repo_id=%s: %s", repo_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clone repository",
        ) from e
    except CountError as e:
        logger.warning("line count failed for repo_id=%s: %s", repo_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to count lines",
        ) from e
    return RepoLinesResponse(total_lines=total)
