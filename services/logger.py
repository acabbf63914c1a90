"""
logger.py - Structured logging with an optional daily-rotated log file.
"""
import os
import logging
import logging.handlers
from datetime import datetime, timezone

LOGGER_NAME = "tobuild"

_initialized = False


class LidFilter(logging.Filter):
    """Give every record a ``lid`` so formatters can always reference it."""

    def filter(self, record):
        if not hasattr(record, "lid"):
            record.lid = "-"
        return True


# JSON-like structured formatter
class StructuredFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "lid": getattr(record, "lid", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        # Flatten to structured log line
        parts = [f"{k}={v}" for k, v in log_entry.items()]
        return " | ".join(parts)


def setup_logging(log_dir=None, log_level="INFO"):
    """
    Configure the build logger.

    Parameters
    ----------
    log_dir : str or None - directory for a rotating log file; console only when None
    log_level : str - logging level
    """
    global _initialized
    logger = logging.getLogger(LOGGER_NAME)
    if _initialized:
        logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        return logger

    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        # File handler - daily rotation, keep 14 days
        log_path = os.path.join(log_dir, "to-build.log")
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_path, when="midnight", backupCount=14, encoding="utf-8"
        )
        file_handler.addFilter(LidFilter())
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    # Console handler
    console = logging.StreamHandler()
    console.addFilter(LidFilter())
    console.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] [%(lid)s] %(message)s"
    ))
    logger.addHandler(console)

    _initialized = True
    logger.debug("Logging initialised")
    return logger


def reset_logging():
    """Detach handlers installed by setup_logging (tests, repeated CLI runs)."""
    global _initialized
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False
