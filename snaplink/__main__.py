"""Run the service with ``python -m snaplink``."""

import uvicorn

from snaplink.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "snaplink.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
