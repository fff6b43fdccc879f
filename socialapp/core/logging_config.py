"""Logging configuration.

Console output is coloured; optional rotating files (general, error, access) can be JSON.
Request-scoped contextvars (request_id/user_id/ip) are stamped on every record so
service logs can be correlated with the access line of the request that caused them.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[Optional[int]] = ContextVar("user_id", default=None)
ip_ctx: ContextVar[Optional[str]] = ContextVar("ip_address", default=None)

TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_EXTRA_FIELDS = (
    ("user_id", "user_id"),
    ("request_id", "request_id"),
    ("ip_address", "ip_address"),
    ("endpoint", "endpoint"),
    ("method", "method"),
    ("status_code", "status_code"),
    ("duration", "duration_ms"),
)


class JSONFormatter(logging.Formatter):
    """Emit one JSON object per record for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for attr, key in _EXTRA_FIELDS:
            if hasattr(record, attr):
                log_data[key] = getattr(record, attr)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Add ANSI colors to console output for local readability."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class ContextEnricher(logging.Filter):
    """Inject contextvars (request_id, user_id, ip_address) into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in (
            ("request_id", request_id_ctx),
            ("user_id", user_id_ctx),
            ("ip_address", ip_ctx),
        ):
            value = var.get()
            if value is not None and not hasattr(record, name):
                setattr(record, name, value)
        return True


def bind_request_context(
    *,
    request_id: Optional[str] = None,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
):
    """Bind request context into contextvars; returns tokens for reset."""
    tokens = []
    if request_id is not None:
        tokens.append((request_id_ctx, request_id_ctx.set(request_id)))
    if user_id is not None:
        tokens.append((user_id_ctx, user_id_ctx.set(user_id)))
    if ip_address is not None:
        tokens.append((ip_ctx, ip_ctx.set(ip_address)))
    return tokens


def bind_user(user_id: int) -> None:
    """Attach the authenticated user to the current request context."""
    user_id_ctx.set(user_id)


def reset_request_context(tokens) -> None:
    """Reset bound contextvars using tokens returned by bind_request_context."""
    for var, token in reversed(tokens):
        var.reset(token)


def _rotating_handler(
    path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset_handlers(logger: logging.Logger) -> None:
    """Close and remove any existing handlers to avoid descriptor leaks."""
    for handler in list(logger.handlers):
        try:
            handler.flush()
        finally:
            handler.close()
            logger.removeHandler(handler)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    app_name: str = "socialapp",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    use_json: bool = False,
    use_colors: bool = True,
) -> None:
    """Configure root and access logging.

    Args:
        log_level: Minimum logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory to store log files; if None, logs only to console.
        app_name: Application name used in log filenames.
        max_bytes: Max size per log file before rotation.
        backup_count: Number of rotated files to keep.
        use_json: If True, use JSON for file handlers.
        use_colors: If True, add ANSI colors to console output.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    context_filter = ContextEnricher()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _reset_handlers(root_logger)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_cls = ColoredFormatter if use_colors else logging.Formatter
    console_handler.setFormatter(console_cls(TEXT_FORMAT, datefmt=DATE_FORMAT))
    console_handler.addFilter(context_filter)
    root_logger.addHandler(console_handler)

    access_logger = logging.getLogger("access")
    _reset_handlers(access_logger)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = not log_dir

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_formatter = (
            JSONFormatter()
            if use_json
            else logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
        )

        for suffix, handler_level in (("", logging.DEBUG), ("_error", logging.ERROR)):
            handler = _rotating_handler(
                log_path / f"{app_name}{suffix}.log",
                handler_level,
                file_formatter,
                max_bytes,
                backup_count,
            )
            handler.addFilter(context_filter)
            root_logger.addHandler(handler)

        access_formatter = (
            JSONFormatter()
            if use_json
            else logging.Formatter(
                "%(asctime)s | %(method)s %(endpoint)s | Status: %(status_code)s"
                " | Duration: %(duration)sms | IP: %(ip_address)s",
                datefmt=DATE_FORMAT,
            )
        )
        access_handler = _rotating_handler(
            log_path / f"{app_name}_access.log",
            logging.INFO,
            access_formatter,
            max_bytes,
            backup_count,
        )
        access_handler.addFilter(context_filter)
        access_logger.addHandler(access_handler)

    # Suppress noisy loggers
    for noisy in ("urllib3", "asyncio", "multipart", "passlib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured. Level: %s, Directory: %s",
        log_level,
        log_dir or "console only",
    )


def log_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_ms: float,
    ip_address: str,
    user_id: Optional[int] = None,
    request_id: Optional[str] = None,
) -> None:
    """Write one structured access-log line for an HTTP request."""
    extra = {
        "method": method,
        "endpoint": endpoint,
        "status_code": status_code,
        "duration": f"{duration_ms:.2f}",
        "ip_address": ip_address,
    }
    if user_id:
        extra["user_id"] = user_id
    if request_id:
        extra["request_id"] = request_id

    logging.getLogger("access").info(
        f"{method} {endpoint} - {status_code} - {duration_ms:.2f}ms", extra=extra
    )
