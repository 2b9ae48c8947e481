from __future__ import annotations

import uvicorn

from .config import settings


def main() -> None:
    uvicorn.run('fileman.main:app', host=settings.app_host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == '__main__':
    main()
