'''
Logger centralisé du service de recherche.

Loguru écrit sur stderr (couleurs) et dans un fichier rotatif par niveau
sous settings.LOG_DIR. Les messages utilisent le format à accolades :
logger.info("Recherche reçue : {query}", query=query)
'''

import os
import sys

from loguru import logger

from app.config import settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# (fichier, niveau minimal, niveaux retenus ; None = tous à partir du minimal)
FILE_SINKS = (
    ("debug.log", "DEBUG", ("DEBUG",)),
    ("search.log", "INFO", ("INFO", "WARNING")),
    ("error.log", "ERROR", None),
)


def _level_filter(levels):
    if levels is None:
        return None
    return lambda record: record["level"].name in levels


def configure_logging(log_dir: str = settings.LOG_DIR, level: str = settings.LOG_LEVEL):
    """Remplace le handler par défaut de loguru par les sorties du service."""
    os.makedirs(log_dir, exist_ok=True)
    logger.remove()

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True, backtrace=True)

    for filename, min_level, levels in FILE_SINKS:
        logger.add(
            os.path.join(log_dir, filename),
            level=min_level,
            format=FILE_FORMAT,
            filter=_level_filter(levels),
            rotation="00:00",
            retention="30 days",
            compression="zip",
            encoding="utf-8",
            backtrace=min_level == "ERROR",
        )
    return logger


configure_logging()
