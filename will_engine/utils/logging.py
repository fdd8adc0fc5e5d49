import contextvars
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


class RequestContext:
    """Per-request values carried through contextvars into every log record."""

    @staticmethod
    def set(request_id: Optional[str] = None) -> None:
        _request_id.set(request_id)
        structlog.contextvars.bind_contextvars(request_id=request_id)

    @staticmethod
    def get_request_id() -> Optional[str]:
        return _request_id.get()

    @staticmethod
    def clear() -> None:
        _request_id.set(None)
        structlog.contextvars.clear_contextvars()


class RequestIdFilter(logging.Filter):
    """Attach the current request id (or "-") to stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True


_FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] "
    "%(funcName)s:%(lineno)d - %(message)s"
)


def _rotating_file(
    path: Path, level: int, max_mb: int, backups: int, request_filter: logging.Filter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    handler.addFilter(request_filter)
    return handler


def setup_logging(log_level: str = "INFO", log_to_file: bool = True) -> None:
    """Set up logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            (
                structlog.processors.JSONRenderer()
                if log_to_file
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    request_filter = RequestIdFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
        )
    )
    console_handler.addFilter(request_filter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_to_file:
        logs_dir = Path("logs")
        logs_dir.mkdir(exist_ok=True)
        # Everything from INFO up, plus a longer-kept ERROR-only file
        root_logger.addHandler(_rotating_file(logs_dir / "app.log", logging.INFO, 10, 5, request_filter))
        root_logger.addHandler(_rotating_file(logs_dir / "errors.log", logging.ERROR, 5, 10, request_filter))

    # Quiet chatty libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_lifecycle_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Structured logger for Will status transitions."""
    return structlog.get_logger(name or "will_engine.lifecycle")


def log_transition(
    will_id: int,
    old_status: str,
    new_status: str,
    reason: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context: Any,
) -> None:
    """Emit one structured record per applied status transition."""
    if logger is None:
        logger = get_lifecycle_logger()
    logger.info(
        "will_status_transition",
        will_id=will_id,
        old_status=old_status,
        new_status=new_status,
        reason=reason,
        **context,
    )


def log_tick_summary(summary: Dict[str, Any], logger: Optional[structlog.BoundLogger] = None) -> None:
    if logger is None:
        logger = get_lifecycle_logger()
    logger.info("lifecycle_tick", **summary)
