from __future__ import annotations

import uvicorn

from repodash.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("repodash.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
