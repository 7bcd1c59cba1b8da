from __future__ import annotations

from fastapi import HTTPException, Request, status

from repodash.core.security import (
    InvalidSessionToken,
    SessionPrincipal,
    bearer_token_from_header,
    decode_session_token,
)
from repodash.services.line_count import LineCounter


def require_principal(request: Request) -> SessionPrincipal:
    token = bearer_token_from_header(request.headers.get("authorization"))
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")

    try:
        return decode_session_token(token)
    except InvalidSessionToken as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        ) from e


def get_line_counter(request: Request) -> LineCounter:
    return request.app.state.line_counter
