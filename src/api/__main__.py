from __future__ import annotations

import uvicorn

from .settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("src.api.main:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
