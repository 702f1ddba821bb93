# kiosk_agent/core/logging_config.py
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from kiosk_agent.core.config import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]  %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

# Named agent logger; handlers are attached by configure_logging().
logger = logging.getLogger("kiosk_agent")


def resolve_log_dir() -> Path:
    log_dir = Path(settings.LOG_DIR)
    if not log_dir.is_absolute():
        log_dir = settings.BASE_DIR / log_dir
    return log_dir


def configure_logging(level: int = logging.INFO) -> Path:
    log_dir = resolve_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = log_dir / "kiosk_agent.log"

    # Handlers: console + rotating file.
    file_handler = TimedRotatingFileHandler(
        log_file_path,
        when="midnight",
        interval=1,
        backupCount=7,
        encoding="utf-8",
        delay=True,
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO; at a 2s cadence that drowns the status lines.
    for name in ["httpx", "httpcore", "nats"]:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.setLevel(level)

    root_logger.info(f"Logging initialized. Writing logs to: {log_file_path}")
    root_logger.info(f"logging start time UTC: {datetime.now(timezone.utc).isoformat()}")
    return log_file_path


__all__ = ["configure_logging", "logger", "logging"]
