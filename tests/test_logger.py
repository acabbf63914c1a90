from __future__ import annotations

import logging
from pathlib import Path

from services.logger import LOGGER_NAME, reset_logging, setup_logging


def test_file_log_carries_lid(tmp_path: Path) -> None:
    try:
        logger = setup_logging(str(tmp_path / "logs"), "DEBUG")
        logger.error("Could not find local path for x.css", extra={"lid": 2001})
        logger.info("plain message")
        for handler in logger.handlers:
            handler.flush()

        content = (tmp_path / "logs" / "to-build.log").read_text(encoding="utf-8")
        assert "level=ERROR | logger=tobuild | lid=2001 | message=Could not find" in content
        assert "lid=- | message=plain message" in content
    finally:
        reset_logging()


def test_setup_is_idempotent() -> None:
    try:
        setup_logging()
        count = len(logging.getLogger(LOGGER_NAME).handlers)
        setup_logging(log_level="WARNING")
        assert len(logging.getLogger(LOGGER_NAME).handlers) == count
        assert logging.getLogger(LOGGER_NAME).level == logging.WARNING
    finally:
        reset_logging()
