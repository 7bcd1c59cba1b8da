from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

GITHUB_PROFILE_BASE_URL = "https://github.com"


@dataclass(frozen=True)
class ExternalProfile:
    username: str
    greeting: str
    profile_url: str


def external_profile(username: str | None) -> ExternalProfile:
    name = (username or "").strip()
    if not name:
        raise ValueError("No user specified")
    return ExternalProfile(
        username=name,
        greeting=f"Hello, {name}!",
        profile_url=f"{GITHUB_PROFILE_BASE_URL}/{quote(name, safe='')}",
    )
