"""Process entrypoint: build the app and serve it with uvicorn."""

import logging
import sys

import uvicorn
from pydantic import ValidationError

from photo_unlock.api.app import create_app
from photo_unlock.app_logging import configure_logging
from photo_unlock.config import Settings
from photo_unlock.containers import build_container

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the HTTP server, exiting with status 1 on missing configuration."""
    configure_logging()
    try:
        settings = Settings()
    except ValidationError as exc:
        missing = sorted(
            str(error["loc"][0]).upper() for error in exc.errors() if error["loc"]
        )
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        sys.exit(1)

    app = create_app(build_container(settings))
    logger.info(
        "Starting server",
        extra={"host": settings.host, "port": settings.port},
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_grace_seconds,
    )


if __name__ == "__main__":
    main()
