from __future__ import annotations

import httpx
from fastapi.testclient import TestClient
from support import API, bearer_for, github_repo, install_github_mock

from repodash.main import create_app
from repodash.models.repos import Repository


def _repos_handler(payload: list[dict], *, seen: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.method == "GET" and request.url.path == "/user/repos":
            return httpx.Response(200, json=payload)
        return httpx.Response(404, json={"message": "not found"})

    return handler


def test_list_repos_syncs_from_github_and_preserves_auto_review(db_session) -> None:
    app = create_app()
    seen: list[httpx.Request] = []
    upstream = [
        github_repo(910001, "alpha", stars=5, description="first"),
        github_repo(910002, "beta", private=True),
    ]
    install_github_mock(app, _repos_handler(upstream, seen=seen))
    client = TestClient(app)
    headers = bearer_for("1001")

    res = client.get("/api/repos", headers=headers)
    assert res.status_code == 200
    data = res.json()
    assert [r["id"] for r in data] == ["910001", "910002"]
    assert data[0] == {
        "id": "910001",
        "name": "alpha",
        "fullName": "octocat/alpha",
        "description": "first",
        "url": "https://github.com/octocat/alpha",
        "stars": 5,
        "defaultBranch": "main",
        "private": False,
        "updatedAt": "2026-01-01T00:00:00Z",
        "autoReview": False,
    }
    assert data[1]["private"] is True

    request = seen[0]
    assert request.headers["authorization"] == "Bearer gho_test_access_token"
    assert request.url.params["sort"] == "updated"
    assert request.url.params["per_page"] == "100"

    toggled = client.post("/api/repos/910001/toggle-auto-review", headers=headers)
    assert toggled.status_code == 200
    assert toggled.json() == {"message": "Auto Review status updated", "autoReview": True}

    # A later sync refreshes upstream fields but keeps the local flag.
    upstream[0] = github_repo(910001, "alpha-renamed", stars=6, description="first")
    res = client.get("/api/repos", headers=headers)
    assert res.status_code == 200
    alpha = res.json()[0]
    assert alpha["name"] == "alpha-renamed"
    assert alpha["stars"] == 6
    assert alpha["autoReview"] is True

    stored = db_session.get(Repository, "910001")
    assert stored is not None
    assert stored.auto_review is True
    assert stored.full_name == "octocat/alpha-renamed"


def test_toggle_auto_review_flips_each_time() -> None:
    app = create_app()
    install_github_mock(app, _repos_handler([github_repo(910010, "gamma")]))
    client = TestClient(app)
    headers = bearer_for("1001")
    assert client.get("/api/repos", headers=headers).status_code == 200

    first = client.post("/api/repos/910010/toggle-auto-review", headers=headers)
    second = client.post("/api/repos/910010/toggle-auto-review", headers=headers)
    assert first.json()["autoReview"] is True
    assert second.json()["autoReview"] is False


def test_toggle_unknown_repository_is_404() -> None:
    client = TestClient(create_app())
    res = client.post("/api/repos/does-not-exist/toggle-auto-review", headers=bearer_for())
    assert res.status_code == 404
    assert res.json()["detail"] == "Repository not found"


def test_list_repos_upstream_failure_is_500() -> None:
    app = create_app()

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url).startswith(f"{API}/user/repos")
        return httpx.Response(502, json={"message": "bad gateway"})

    install_github_mock(app, handler)
    client = TestClient(app)

    res = client.get("/api/repos", headers=bearer_for())
    assert res.status_code == 500
    assert res.json()["detail"] == "Failed to fetch repositories"


def test_repository_routes_require_a_session() -> None:
    client = TestClient(create_app())
    assert client.get("/api/repos").status_code == 401
    assert client.post("/api/repos/910001/toggle-auto-review").status_code == 401
    assert client.get("/api/repos/910001/stats").status_code == 401
    assert client.get("/api/repos/910001/lines").status_code == 401
