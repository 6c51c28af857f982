"""
Configuración de loguru para el CLI.
"""
import sys

from loguru import logger

from airtable_mirror.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """
    Reemplaza el sink por defecto: stderr al nivel configurado y, si LOG_FILE
    está definido, un archivo con rotación.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="10 MB",
            retention="10 days",
            level=settings.LOG_LEVEL,
            encoding="utf-8",
        )
