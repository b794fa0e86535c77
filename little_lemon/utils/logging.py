import logging
import sys

from pythonjsonlogger import jsonlogger

# httpx logs every request at INFO; aiosqlite logs every statement at DEBUG
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


def setup_logging(log_level: str = "INFO", service_name: str = "little-lemon") -> None:
    """
    Route every log record to stdout as one JSON object per line.

    Each record carries ``service`` so lines stay attributable once they are
    shipped next to other processes' output. ``extra={...}`` keys become
    top-level JSON fields.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
            static_fields={"service": service_name},
        )
    )
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
