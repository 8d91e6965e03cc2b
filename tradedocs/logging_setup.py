import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


_LOG_FILE_NAME = "tradedocs.log"
_MAX_LOG_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 5
_DEFAULT_LOG_DIR = "./data/logs"

# Chatty client libraries used for uploads; kept at WARNING unless debugging.
_QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def _debug_enabled() -> bool:
    return os.getenv("TRADEDOCS_DEBUG") == "1"


def _apply_levels(root_logger: logging.Logger, log_level: int) -> None:
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers:
        handler.setLevel(log_level)
    quiet_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def setup_logging() -> Path:
    """
    Route tradedocs logs to stdout and a rotating file.

    The file is ``tradedocs.log`` under ``TRADEDOCS_LOG_DIR``. Calling this
    again only re-applies the level from ``TRADEDOCS_DEBUG``. Returns the log
    file path.
    """
    log_level = logging.DEBUG if _debug_enabled() else logging.INFO
    root_logger = logging.getLogger()
    configured = getattr(root_logger, "_tradedocs_log_file", None)
    if configured is not None:
        _apply_levels(root_logger, log_level)
        return configured

    log_dir = Path(os.getenv("TRADEDOCS_LOG_DIR") or _DEFAULT_LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / _LOG_FILE_NAME

    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_BACKUP_COUNT,
    )
    file_handler.setFormatter(formatter)

    root_logger.handlers.clear()
    root_logger.addHandler(stream_handler)
    root_logger.addHandler(file_handler)
    _apply_levels(root_logger, log_level)
    root_logger._tradedocs_log_file = log_file
    logging.getLogger(__name__).debug("Logging to %s", log_file)
    return log_file
