"""Logging setup"""
import logging
import sys
from pathlib import Path
from datetime import datetime

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# server, database driver, socket and object-store chatter
NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "aiosqlite",
    "websockets",
    "httpx",
    "httpcore",
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3",
)


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: str = "logs",
    app_name: str = "campusboard",
    sql_echo: bool = False,
) -> None:
    """
    Configure the root logger: stdout, a daily app log and a daily error log.

    Args:
        log_level: root level name
        log_dir: directory for the daily log files
        app_name: prefix of the log file names
        sql_echo: let SQLAlchemy statements through at INFO
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    today = datetime.now().strftime("%Y-%m-%d")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), logging.DEBUG))
    root_logger.addHandler(
        _handler(logging.FileHandler(log_path / f"{app_name}_{today}.log", encoding="utf-8"), logging.INFO)
    )
    root_logger.addHandler(
        _handler(logging.FileHandler(log_path / f"{app_name}_error_{today}.log", encoding="utf-8"), logging.ERROR)
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)

    logging.getLogger(__name__).info("logging configured: level=%s dir=%s", log_level, log_dir)
