from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from repodash.core.deps import require_principal
from repodash.core.http import get_http_client
from repodash.core.security import SessionPrincipal
from repodash.db.session import get_session
from repodash.schemas.auth import LoginResponse, LoginStartResponse, OAuthCallbackRequest, UserOut
from repodash.services.auth import complete_github_login, start_github_login

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/github", response_model=LoginStartResponse)
def github_login_start(
    response: Response, session: Session = Depends(get_session)
) -> LoginStartResponse:
    start = start_github_login(session=session)
    session.commit()
    response.headers["Cache-Control"] = "no-store"
    return LoginStartResponse(auth_url=start.auth_url, state=start.state)


@router.post("/github/callback", response_model=LoginResponse)
def github_login_callback(
    payload: OAuthCallbackRequest,
    response: Response,
    session: Session = Depends(get_session),
    http_client: httpx.Client = Depends(get_http_client),
) -> LoginResponse:
    result = complete_github_login(
        session=session,
        http_client=http_client,
        code=payload.code,
        state=payload.state,
    )
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(token=result.token, user=UserOut.model_validate(result.principal))


@router.get("/me", response_model=UserOut)
def whoami(principal: SessionPrincipal = Depends(require_principal)) -> UserOut:
    # UserOut has no field for the embedded GitHub access token.
    return UserOut.model_validate(principal)
