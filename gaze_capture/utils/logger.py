"""
Logging setup shared by the capture wizard and the upload server.

Both entry points call `setup_from_config` with the `logging` section of
config.yaml: project messages go to the console (short format) and, when a
log directory is configured, to a dated file (detailed format). Chatty
third-party loggers (the Flask dev server, HTTP connection pools) are capped
at WARNING.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from gaze_capture.utils.config_loader import get_section


PROJECT_LOGGER = "gaze_capture"
QUIET_LOGGERS = ("werkzeug", "urllib3", "httpx", "httpcore")

CONSOLE_FORMAT = '%(levelname)s: %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'


def setup_logger(
    name: str = PROJECT_LOGGER,
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    log_file: Optional[str] = None,
    console_output: bool = True,
    quiet: Iterable[str] = QUIET_LOGGERS
) -> logging.Logger:
    """
    Configure the project logger.

    Args:
        name: Logger name; module loggers below it (gaze_capture.*) propagate to it
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: Directory for the log file; no file is written unless this or log_file is set
        log_file: File name inside log_dir (default: '<name>_YYYYMMDD.log')
        console_output: Whether to log to stdout
        quiet: Third-party loggers to cap at WARNING

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))
    logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logger.level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    log_path = _log_path(name, log_dir, log_file)
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(file_handler)
        logger.info(f"Logging to file: {log_path}")

    for noisy in quiet:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def setup_from_config(config: Optional[Dict[str, Any]], name: str = PROJECT_LOGGER) -> logging.Logger:
    """Configure the project logger from the `logging` section of a loaded config."""
    logging_cfg = get_section(config, 'logging')
    return setup_logger(
        name=name,
        log_level=logging_cfg.get('level', 'INFO'),
        log_dir=logging_cfg.get('log_directory'),
        log_file=logging_cfg.get('log_file'),
        console_output=logging_cfg.get('console', True),
        quiet=logging_cfg.get('quiet', QUIET_LOGGERS),
    )


def _log_path(name: str, log_dir: Optional[str], log_file: Optional[str]) -> Optional[Path]:
    if not log_dir and not log_file:
        return None
    directory = Path(log_dir) if log_dir else Path("logs")
    return directory / (log_file or f"{name}_{datetime.now():%Y%m%d}.log")
