"""Application logging setup."""

import logging

from app.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install the root handler once; later calls only adjust the level."""
    global _configured

    log_level = (level or settings.log_level).upper()
    if not _configured:
        logging.basicConfig(level=log_level, format=LOG_FORMAT)
        _configured = True
    logging.getLogger().setLevel(log_level)

    # SQL echo is driven by debug, keep the engine logger quieter otherwise
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
