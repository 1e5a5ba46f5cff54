"""Run the relay with uvicorn: ``python -m relay``."""
from __future__ import annotations

import structlog
import uvicorn

from relay.core.config import get_settings

logger = structlog.get_logger(__name__)


def main() -> None:
    settings = get_settings()
    logger.info(
        "Webhook server starting",
        listen=f"http://{settings.host}:{settings.port}",
        browse=f"http://{settings.public_host}:{settings.port}/meta",
    )
    uvicorn.run("relay.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
