from __future__ import annotations

import os
import sys

import httpx


def _assert_ok(response: httpx.Response, *, label: str) -> None:
    if response.status_code >= 400:
        raise RuntimeError(f"{label} failed: HTTP {response.status_code} body={response.text}")


def main() -> None:
    base_url = os.environ.get("API_BASE_URL", "http://localhost:5000")
    token = os.environ.get("SMOKE_TOKEN", "")

    with httpx.Client(base_url=base_url, timeout=20.0) as client:
        health = client.get("/healthz")
        _assert_ok(health, label="GET /healthz")
        print("ok: GET /healthz")

        ready = client.get("/readyz")
        _assert_ok(ready, label="GET /readyz")
        print("ok: GET /readyz")

        login = client.get("/api/auth/github")
        _assert_ok(login, label="GET /api/auth/github")
        print(f"ok: GET /api/auth/github -> {login.json()['authUrl'].split('?', 1)[0]}")

        if not token:
            print("smoke complete (set SMOKE_TOKEN to exercise authenticated routes)")
            return

        headers = {"Authorization": f"Bearer {token}"}
        me = client.get("/api/auth/me", headers=headers)
        _assert_ok(me, label="GET /api/auth/me")
        print("ok: GET /api/auth/me")

        repos = client.get("/api/repos", headers=headers)
        _assert_ok(repos, label="GET /api/repos")
        print(f"ok: GET /api/repos ({len(repos.json())} repositories)")

        contacts = client.get("/api/contacts", headers=headers)
        _assert_ok(contacts, label="GET /api/contacts")
        print(f"ok: GET /api/contacts ({len(contacts.json())} contacts)")

        print(f"smoke complete: user={me.json()['username']}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # noqa: BLE001
        print(f"smoke failed: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
