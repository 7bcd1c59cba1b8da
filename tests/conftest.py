from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from contextlib import suppress
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy.orm import Session

TEST_ENCRYPTION_KEY_BASE64 = "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY="


@pytest.fixture(scope="session", autouse=True)
def _test_database(tmp_path_factory: pytest.TempPathFactory) -> Iterator[None]:
    # Every test session gets its own SQLite file, migrated with alembic like production.
    db_path = tmp_path_factory.mktemp("db") / "repodash_test.sqlite3"
    os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{db_path}"
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes!")
    os.environ.setdefault("ENCRYPTION_KEY_BASE64", TEST_ENCRYPTION_KEY_BASE64)
    os.environ.setdefault("GITHUB_CLIENT_ID", "test-github-client-id")
    os.environ.setdefault("GITHUB_CLIENT_SECRET", "test-github-client-secret")
    os.environ.setdefault("GITHUB_REDIRECT_URI", "http://localhost:5173/auth/callback/github")
    os.environ.setdefault("RATE_LIMIT_REQUESTS_PER_MINUTE", "0")

    # Clear cached settings/engines so imports inside the test session use the test DB.
    from repodash.core.config import get_settings
    from repodash.db.session import get_engine, get_sessionmaker

    get_settings.cache_clear()
    get_engine.cache_clear()
    get_sessionmaker.cache_clear()

    alembic_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
    cfg = Config(str(alembic_ini))
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")

    yield

    with suppress(Exception):
        get_engine().dispose()
    get_engine.cache_clear()
    get_sessionmaker.cache_clear()
    get_settings.cache_clear()


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    from repodash.db.session import get_sessionmaker

    SessionLocal = get_sessionmaker()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
