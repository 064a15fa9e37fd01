import logging
from typing import Optional

from treemerge.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("treemerge")
    logger.setLevel((level or settings.log_level).upper())

    if not any(getattr(h, "_treemerge", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._treemerge = True
        logger.addHandler(handler)

    return logger
