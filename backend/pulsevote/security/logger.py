import logging
from logging.handlers import RotatingFileHandler

from pulsevote.core.settings import get_settings

_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _build(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)

    # Prevent duplicate handlers
    if not logger.handlers:
        # Rotating file handler: max 5 MB per file, keep 3 backups
        handler = RotatingFileHandler(get_settings().log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger


app_logger = _build("pulsevote.app")
auth_logger = _build("pulsevote.auth")
org_logger = _build("pulsevote.orgs")
poll_logger = _build("pulsevote.polls")
