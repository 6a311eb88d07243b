"""
Logger setup: Rich console output plus a persistent log file.
"""

import logging
import os
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

from ubuntu_post_install.ui import console

LOGGER_NAME = "ubuntu_post_install"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(log_file: Union[str, Path], debug: bool = False) -> logging.Logger:
    """
    Configure a logger with Rich formatting and persistent file logging.

    Args:
        log_file: Path to the log file
        debug: Show debug messages on the console as well

    Returns:
        Configured logger instance
    """
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    rich_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    try:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        logger.warning(f"Could not set up file logging to {log_file}: {e}")

    return logger
