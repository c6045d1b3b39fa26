import logging
import sys

from loguru import logger

_NOISY_LOGGERS = {
    "urllib3": "WARNING",
    "aiosqlite": "WARNING",
    "uvicorn.access": "WARNING",
    "asyncio": "WARNING",
}


def configure_logging(level: str = "INFO") -> None:
    """Route all application logs through a single loguru stdout sink."""
    logger.remove()
    logger.configure(
        handlers=[  # type: ignore
            {
                "sink": sys.stdout,
                "level": level.upper(),
                "format": (
                    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                    "<level>{level}</level> | "
                    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                    "<level>{message}</level>"
                ),
                "colorize": True,
            },
        ]
    )
    for name, lvl in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(lvl)
