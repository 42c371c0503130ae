# utils/logger.py
import os
import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_DIR = "logs"


def resolve_level(level: Union[int, str, None]) -> int:
    """
    Turn a level name ("debug", "INFO") or number into a logging level.

    Falls back to LAYOFFS_LOG_LEVEL from the environment, then INFO.
    """
    if level is None:
        level = os.environ.get("LAYOFFS_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logger(
    logger_name: str,
    log_file: Optional[str] = None,
    level: Union[int, str, None] = None,
    log_dir: Optional[str] = None
) -> logging.Logger:
    """
    Set up and return a logger with file and console handlers.

    Args:
        logger_name: Name of the logger
        log_file: Optional specific log filename (default: {logger_name}.log)
        level: Logging level or level name (default: LAYOFFS_LOG_LEVEL or INFO)
        log_dir: Directory for log files (default: LAYOFFS_LOG_DIR or logs)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = os.environ.get("LAYOFFS_LOG_DIR", DEFAULT_LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)

    if log_file is None:
        log_file = f"{logger_name.lower().replace(' ', '_')}.log"

    log_path = os.path.join(log_dir, log_file)

    logger = logging.getLogger(logger_name)
    logger.setLevel(resolve_level(level))

    # Clear existing handlers to avoid duplicates if logger already exists
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.debug(f"Log file is being saved to: {os.path.abspath(log_path)}")

    return logger


def configure_pipeline_logging(
    level: Union[int, str, None] = None,
    log_dir: Optional[str] = None
) -> logging.Logger:
    """
    Route every layer logger through one shared file/console setup.

    The layer modules only call logging.getLogger(<LayerName>); this attaches
    handlers to the common "layoff_pipeline" parent they propagate to.
    """
    return setup_logger("layoff_pipeline", log_file="layoff_pipeline.log", level=level, log_dir=log_dir)
