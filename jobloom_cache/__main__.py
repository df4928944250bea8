"""Run the cache service with uvicorn: ``python -m jobloom_cache``."""

import uvicorn

from jobloom_cache.config import get_settings
from jobloom_cache.main import create_app


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
