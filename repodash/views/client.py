from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx

from repodash.schemas.auth import UserOut
from repodash.schemas.contacts import ContactOut
from repodash.schemas.messages import MessageOut
from repodash.schemas.repos import RepositoryOut, RepoStatsResponse
from repodash.views.chat import ChatMessage
from repodash.views.profile import ProfileSummary, summarize_profile


class ClientError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LoginError(ClientError):
    pass


class SessionExpiredError(ClientError):
    """Raised after a 401; the session is already cleared and the user must log in again."""


@dataclass
class ClientSession:
    token: str | None = None
    user: UserOut | None = None
    pending_state: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    def clear(self) -> None:
        self.token = None
        self.user = None
        self.pending_state = None


@dataclass(frozen=True)
class RepoDetail:
    stats: RepoStatsResponse
    total_lines: int | None


class DashboardClient:
    """HTTP binding for the dashboard views with an explicit, owned session.

    Pass an existing ``httpx.Client`` (for example a test client) or let the
    dashboard client build and own one for ``base_url``.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        http: httpx.Client | None = None,
        session: ClientSession | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)
        self.session = session or ClientSession()

    def __enter__(self) -> DashboardClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.session.clear()
        if self._owns_http:
            self._http.close()

    def _auth_headers(self) -> dict[str, str]:
        if self.session.token is None:
            raise SessionExpiredError("Not logged in", status_code=401)
        return {"Authorization": f"Bearer {self.session.token}"}

    def _request(self, method: str, path: str, *, auth: bool = True, **kwargs: Any) -> Any:
        headers = self._auth_headers() if auth else {}
        res = self._http.request(method, path, headers=headers, **kwargs)
        if res.status_code == 401:
            self.session.clear()
            raise SessionExpiredError("Session expired", status_code=401)
        if res.status_code >= 400:
            try:
                detail = res.json().get("detail")
            except ValueError:
                detail = None
            raise ClientError(
                detail or f"{method} {path} failed: HTTP {res.status_code}",
                status_code=res.status_code,
            )
        return res.json()

    # Auth

    def start_login(self) -> str:
        data = self._request("GET", "/api/auth/github", auth=False)
        self.session.pending_state = data["state"]
        return data["authUrl"]

    def complete_login(self, *, code: str, state: str) -> UserOut:
        expected = self.session.pending_state
        if not expected or state != expected:
            self.session.pending_state = None
            raise LoginError("Invalid state")

        self.session.pending_state = None
        try:
            data = self._request(
                "POST", "/api/auth/github/callback", auth=False, json={"code": code, "state": state}
            )
        except ClientError as e:
            raise LoginError("Authentication failed", status_code=e.status_code) from e

        self.session.token = data["token"]
        self.session.user = UserOut.model_validate(data["user"])
        return self.session.user

    def logout(self) -> None:
        self.session.clear()

    def me(self) -> UserOut:
        user = UserOut.model_validate(self._request("GET", "/api/auth/me"))
        self.session.user = user
        return user

    # Repositories

    def list_repos(self) -> list[RepositoryOut]:
        return [RepositoryOut.model_validate(r) for r in self._request("GET", "/api/repos")]

    def toggle_auto_review(self, repo_id: str) -> bool:
        data = self._request("POST", f"/api/repos/{repo_id}/toggle-auto-review")
        return bool(data["autoReview"])

    def repo_stats(self, repo_id: str) -> RepoStatsResponse:
        return RepoStatsResponse.model_validate(self._request("GET", f"/api/repos/{repo_id}/stats"))

    def repo_lines(self, repo_id: str) -> int:
        return int(self._request("GET", f"/api/repos/{repo_id}/lines")["totalLines"])

    def repo_detail(self, repo_id: str) -> RepoDetail:
        stats = self.repo_stats(repo_id)
        try:
            total_lines: int | None = self.repo_lines(repo_id)
        except SessionExpiredError:
            raise
        except ClientError:
            # The detail page still renders stats when the line count fails.
            total_lines = None
        return RepoDetail(stats=stats, total_lines=total_lines)

    def profile_summary(self) -> ProfileSummary:
        user = self.session.user or self.me()
        return summarize_profile(user, self.list_repos())

    # Chat

    def contacts(self) -> list[ContactOut]:
        return [ContactOut.model_validate(c) for c in self._request("GET", "/api/contacts")]

    def messages(self, contact_id: str) -> list[ChatMessage]:
        rows = [MessageOut.model_validate(m) for m in self._request("GET", f"/api/messages/{contact_id}")]
        return [
            ChatMessage(
                sender_id=m.sender_id,
                receiver_id=m.receiver_id,
                content=m.content,
                timestamp=m.timestamp.isoformat(),
                id=str(m.id),
            )
            for m in rows
        ]
