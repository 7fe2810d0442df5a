"""
Logging Configuration
Sets up the 'mars_quake' logger used by every module of the viewer
"""
import logging
import sys
from typing import Optional, Union

LOGGER_NAME = "mars_quake"


def get_logger(name: str) -> logging.Logger:
    """Child logger under the application namespace"""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the application logger.

    Args:
        level: Logging level, either numeric or a name such as "DEBUG"
        log_file: Optional path to also write logs to
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate output when setup runs twice (tests, restarts)
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
