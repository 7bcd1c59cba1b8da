from __future__ import annotations

from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlparse

import httpx
from fastapi.testclient import TestClient
from support import API, bearer_for, install_github_mock, json_body

from repodash.core.security import decode_session_token
from repodash.main import create_app
from repodash.models.oauth import OAuthState

TOKEN_URL = "https://github.com/login/oauth/access_token"


def _github_profile_handler(*, email: str | None = "octo@example.com", calls: list[str] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)

        if request.method == "POST" and url == TOKEN_URL:
            body = json_body(request)
            assert body["client_id"] == "test-github-client-id"
            assert body["code"] == "good-code"
            return httpx.Response(
                200,
                json={"access_token": "gho_issued", "scope": "read:user,user:email,repo", "token_type": "bearer"},
            )

        if request.method == "GET" and url == f"{API}/user":
            assert request.headers.get("authorization") == "Bearer gho_issued"
            return httpx.Response(
                200,
                json={
                    "id": 583231,
                    "login": "octocat",
                    "name": "The Octocat",
                    "email": email,
                    "avatar_url": "https://avatars.githubusercontent.com/u/583231",
                    "bio": "cat",
                    "followers": 10,
                    "following": 4,
                    "public_repos": 8,
                },
            )

        if request.method == "GET" and url == f"{API}/user/emails":
            return httpx.Response(
                200,
                json=[
                    {"email": "secondary@example.com", "primary": False, "verified": True},
                    {"email": "primary@example.com", "primary": True, "verified": True},
                ],
            )

        return httpx.Response(404, json={"message": "not found"})

    return handler


def _start(client: TestClient) -> str:
    res = client.get("/api/auth/github")
    assert res.status_code == 200
    return res.json()["state"]


def test_login_start_returns_authorize_url_with_state() -> None:
    app = create_app()
    client = TestClient(app)

    res = client.get("/api/auth/github")
    assert res.status_code == 200
    assert res.headers.get("cache-control") == "no-store"
    data = res.json()

    url = urlparse(data["authUrl"])
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://github.com/login/oauth/authorize"
    params = parse_qs(url.query)
    assert params["client_id"] == ["test-github-client-id"]
    assert params["scope"] == ["read:user user:email repo"]
    assert params["state"] == [data["state"]]
    assert params["redirect_uri"] == ["http://localhost:5173/auth/callback/github"]


def test_callback_issues_session_token_once_per_state() -> None:
    app = create_app()
    install_github_mock(app, _github_profile_handler())
    client = TestClient(app)

    state = _start(client)
    res = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
    assert res.status_code == 200
    assert res.headers.get("cache-control") == "no-store"
    data = res.json()

    assert data["user"]["id"] == "583231"
    assert data["user"]["username"] == "octocat"
    assert data["user"]["email"] == "octo@example.com"
    assert data["user"]["publicRepos"] == 8
    assert data["user"]["provider"] == "github"
    assert "accessToken" not in data["user"]

    principal = decode_session_token(data["token"])
    assert principal.id == "583231"
    assert principal.access_token == "gho_issued"

    replay = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
    assert replay.status_code == 400
    assert replay.json()["detail"] == "Invalid state parameter"


def test_callback_rejects_unknown_missing_and_expired_state(db_session) -> None:
    app = create_app()
    calls: list[str] = []
    install_github_mock(app, _github_profile_handler(calls=calls))
    client = TestClient(app)

    missing = client.post("/api/auth/github/callback", json={"code": "good-code"})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing state parameter"

    no_code = client.post("/api/auth/github/callback", json={"state": "whatever"})
    assert no_code.status_code == 400
    assert no_code.json()["detail"] == "Missing OAuth code"

    unknown = client.post("/api/auth/github/callback", json={"code": "good-code", "state": "never-issued"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Invalid state parameter"

    now = datetime.now(UTC)
    db_session.add(
        OAuthState(
            state="expired-state-value",
            provider="github",
            created_at=now - timedelta(minutes=10),
            expires_at=now - timedelta(minutes=5),
        )
    )
    db_session.commit()

    expired = client.post(
        "/api/auth/github/callback", json={"code": "good-code", "state": "expired-state-value"}
    )
    assert expired.status_code == 400
    assert expired.json()["detail"] == "Invalid state parameter"

    # None of the rejected callbacks reached GitHub.
    assert calls == []


def test_callback_falls_back_to_primary_email() -> None:
    app = create_app()
    install_github_mock(app, _github_profile_handler(email=None))
    client = TestClient(app)

    state = _start(client)
    res = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
    assert res.status_code == 200
    assert res.json()["user"]["email"] == "primary@example.com"


def test_callback_maps_token_exchange_failure_to_500() -> None:
    app = create_app()

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            return httpx.Response(
                200,
                json={"error": "bad_verification_code", "error_description": "The code is incorrect"},
            )
        raise AssertionError(f"unexpected request {request.url}")

    install_github_mock(app, handler)
    client = TestClient(app)

    state = _start(client)
    res = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
    assert res.status_code == 500
    assert res.json()["detail"] == "Authentication failed"

    # The state was spent by the failed attempt.
    retry = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
    assert retry.status_code == 400


def test_callback_maps_profile_failure_to_500() -> None:
    app = create_app()

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, json={"access_token": "gho_issued"})
        return httpx.Response(401, json={"message": "Bad credentials"})

    install_github_mock(app, handler)
    client = TestClient(app)

    state = _start(client)
    res = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
    assert res.status_code == 500
    assert res.json()["detail"] == "Failed to fetch user profile"


def test_me_requires_a_valid_bearer_token() -> None:
    app = create_app()
    client = TestClient(app)

    missing = client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "No token provided"

    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401
    assert bad.json()["detail"] == "Invalid token"

    ok = client.get("/api/auth/me", headers=bearer_for("1001", username="hubot"))
    assert ok.status_code == 200
    data = ok.json()
    assert data["id"] == "1001"
    assert data["username"] == "hubot"
    assert data["email"] == "hubot@example.com"
    assert "accessToken" not in data


def test_login_start_reports_unconfigured_oauth(monkeypatch) -> None:
    from repodash.core.config import get_settings

    monkeypatch.setenv("GITHUB_CLIENT_ID", "")
    get_settings.cache_clear()
    try:
        client = TestClient(create_app())
        res = client.get("/api/auth/github")
        assert res.status_code == 503
    finally:
        get_settings.cache_clear()


def test_callback_with_placeholder_encryption_key_is_a_clear_500(monkeypatch) -> None:
    from repodash.core.config import get_settings

    monkeypatch.setenv("ENCRYPTION_KEY_BASE64", "change-me-32-bytes-base64")
    get_settings.cache_clear()
    try:
        app = create_app()
        install_github_mock(app, _github_profile_handler())
        client = TestClient(app)

        state = _start(client)
        res = client.post("/api/auth/github/callback", json={"code": "good-code", "state": state})
        assert res.status_code == 500
        assert res.json()["detail"] == "Server encryption key is not configured"
    finally:
        get_settings.cache_clear()


def test_token_exchange_keeps_only_token_and_granted_scope() -> None:
    from repodash.services.github.oauth import exchange_code_for_token

    http_client = httpx.Client(transport=httpx.MockTransport(_github_profile_handler()))
    token = exchange_code_for_token(
        http_client,
        code="good-code",
        client_id="test-github-client-id",
        client_secret="secret",
        redirect_uri="http://localhost:5173/auth/callback/github",
    )
    assert token.access_token == "gho_issued"
    assert token.scope == "read:user,user:email,repo"
    assert not hasattr(token, "token_type")
