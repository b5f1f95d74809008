"""
Logging setup

Installs handlers on the ``polystore`` logger from a LoggingConfig. Modules
only ever call ``logging.getLogger(__name__)``; this is the one place that
decides where records go.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .configuration import LoggingConfig

ROOT_LOGGER = "polystore"


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Attach a console handler and an optional rotating file handler"""
    config = config or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(config.level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if config.file_path:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging configured at level {config.level}")
    return logger


__all__ = ["configure_logging", "ROOT_LOGGER"]
