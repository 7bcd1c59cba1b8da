"""Repository line counting.

Callers depend on the ``LineCounter`` protocol only. The default
``GitCloneLineCounter`` shallow-clones into a private temporary directory
and walks the checkout; another implementation (a cached one, or one backed
by a job queue) can replace it without touching the routes.
"""

from __future__ import annotations

import base64
import logging
import os
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from repodash.core.metrics import observe_line_count

logger = logging.getLogger("repodash.api")

_CHUNK_SIZE = 1024 * 1024
_SKIP_DIRS = frozenset({".git"})


class CloneError(RuntimeError):
    pass


class CountError(RuntimeError):
    pass


class LineCounter(Protocol):
    def count_lines(self, *, clone_url: str, access_token: str | None = None) -> int: ...


def count_file_lines(path: Path) -> int:
    # Same rule as `wc -l`: count newline bytes, so a final unterminated line is not counted.
    total = 0
    with path.open("rb") as fh:
        while chunk := fh.read(_CHUNK_SIZE):
            total += chunk.count(b"\n")
    return total


def count_lines_on_disk(root: Path) -> int:
    def _raise(err: OSError) -> None:
        raise err

    total = 0
    try:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames[:] = [d for d in dirnames if d not in _SKIP_DIRS]
            for name in filenames:
                path = Path(dirpath) / name
                if path.is_symlink() or not path.is_file():
                    continue
                total += count_file_lines(path)
    except OSError as e:
        raise CountError(f"failed to count lines under {root}: {e}") from e
    return total


def _git_auth_env(access_token: str | None) -> dict[str, str]:
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    if access_token:
        # Passed through git's config environment so the token never shows up in argv.
        basic = base64.b64encode(f"x-access-token:{access_token}".encode()).decode("ascii")
        env.update(
            {
                "GIT_CONFIG_COUNT": "1",
                "GIT_CONFIG_KEY_0": "http.extraHeader",
                "GIT_CONFIG_VALUE_0": f"Authorization: Basic {basic}",
            }
        )
    return env


@dataclass
class GitCloneLineCounter:
    git_binary: str = "git"
    timeout_seconds: float = 120.0
    max_concurrent_clones: int = 2
    _slots: threading.BoundedSemaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._slots = threading.BoundedSemaphore(self.max_concurrent_clones)

    def count_lines(self, *, clone_url: str, access_token: str | None = None) -> int:
        started = time.monotonic()
        if not self._slots.acquire(timeout=self.timeout_seconds):
            observe_line_count(outcome="busy", duration_seconds=time.monotonic() - started)
            raise CloneError("timed out waiting for a free clone slot")
        try:
            with tempfile.TemporaryDirectory(prefix="repodash-clone-") as tmp:
                checkout = Path(tmp) / "checkout"
                self._clone(clone_url=clone_url, dest=checkout, access_token=access_token)
                total = count_lines_on_disk(checkout)
        except CloneError:
            observe_line_count(outcome="clone_error", duration_seconds=time.monotonic() - started)
            raise
        except CountError:
            observe_line_count(outcome="count_error", duration_seconds=time.monotonic() - started)
            raise
        finally:
            self._slots.release()

        observe_line_count(outcome="ok", duration_seconds=time.monotonic() - started)
        return total

    def _clone(self, *, clone_url: str, dest: Path, access_token: str | None) -> None:
        cmd = [self.git_binary, "clone", "--depth=1", "--quiet", "--", clone_url, str(dest)]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                env=_git_auth_env(access_token),
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CloneError(f"git clone timed out after {self.timeout_seconds}s") from e
        except OSError as e:
            raise CloneError(f"git clone could not start: {e}") from e

        if result.returncode != 0:
            logger.warning(
                "git clone failed rc=%s stderr=%s", result.returncode, result.stderr.strip()[:500]
            )
            raise CloneError(f"git clone exited with status {result.returncode}")
