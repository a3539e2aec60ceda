"""
Structured logging configuration for the AI Diff Reviewer.
Provides machine-readable logging in production and human-readable logging in development,
with contextual information attached to each record and secrets redacted.
"""

import json
import logging
import os
import sys
import time
import traceback
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple, TypeVar, cast


# Type variable for decorator
F = TypeVar('F', bound=Callable[..., Any])

ROOT_LOGGER_NAME = "diff_reviewer"

# Default log format
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Maximum log file size (10 MB default)
MAX_LOG_SIZE = int(os.environ.get("MAX_LOG_SIZE", 10 * 1024 * 1024))

# Maximum number of backup log files
BACKUP_COUNT = int(os.environ.get("BACKUP_LOG_COUNT", 5))

# Sensitive keys that should be redacted in logs
SENSITIVE_KEYS = [
    "api_key", "token", "password", "secret", "authorization",
    "access_token", "auth", "credentials", "pass"
]

_configured = False


def is_sensitive_key(key: Any) -> bool:
    """
    True if a sensitive name is one of the key's ``_``/``-`` separated parts.

    ``GITHUB_TOKEN`` and ``x-api-key`` match; ``max_tokens`` and ``author`` do not.
    """
    normalized = "_" + str(key).lower().replace("-", "_") + "_"
    return any(f"_{sensitive_key}_" in normalized for sensitive_key in SENSITIVE_KEYS)


def redact_sensitive_info(obj: Any) -> Any:
    """Redact sensitive information from logs."""
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if is_sensitive_key(key):
                result[key] = "[REDACTED]"
            else:
                result[key] = redact_sensitive_info(value)
        return result
    elif isinstance(obj, (list, tuple)):
        return [redact_sensitive_info(item) for item in obj]
    return obj


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs JSON formatted logs for machine consumption.
    Each log message is a single line JSON object with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as a JSON string."""
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        context = getattr(record, "context", None)
        if context:
            log_obj["context"] = redact_sensitive_info(context)

        if record.exc_info:
            log_obj["traceback"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_obj, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable logs for development.
    Includes context in a readable format.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record in a human-readable format."""
        log_str = super().format(record)

        context = getattr(record, "context", None)
        if context:
            context = redact_sensitive_info(context)
            context_str = "\n".join(f"    {k}: {v}" for k, v in context.items())
            log_str += f"\n  Context:\n{context_str}"

        return log_str


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that allows passing context with each log call.
    Merges the context into the log record.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        """Move the ``context`` keyword into the record's extra data."""
        context = kwargs.pop("context", None) or {}
        if not isinstance(context, dict):
            context = {"value": context}

        if self.extra:
            context = {**self.extra, **context}

        extra = dict(kwargs.get("extra") or {})
        extra["context"] = context
        kwargs["extra"] = extra
        return msg, kwargs


def with_context(func: F) -> F:
    """
    Decorator that logs entry/exit from the function with its arguments as context,
    and logs any exception before re-raising it.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)

        context = {
            "function": func.__name__,
            "kwargs": {k: str(v) for k, v in kwargs.items() if not is_sensitive_key(k)}
        }

        logger.debug(f"Entering {func.__name__}", context=context)

        try:
            start_time = time.time()
            result = func(*args, **kwargs)
            execution_time = time.time() - start_time

            exit_context = {**context, "execution_time_ms": int(execution_time * 1000)}
            logger.debug(f"Exiting {func.__name__}", context=exit_context)

            return result
        except Exception as e:
            error_context = {**context, "error": str(e), "error_type": type(e).__name__}
            logger.debug(f"Error in {func.__name__}", context=error_context)
            raise

    return cast(F, wrapper)


def setup_logging(log_level: Optional[str] = None,
                  app_env: Optional[str] = None,
                  log_dir: Optional[str] = None) -> logging.Logger:
    """
    Set up logging with appropriate formatters and handlers on the package logger.

    Args:
        log_level: The log level to use (defaults to the LOG_LEVEL environment variable)
        app_env: "production" for JSON logs (defaults to the APP_ENV environment variable)
        log_dir: Directory for a rotating log file (defaults to LOG_DIR; no file when unset)

    Returns:
        The configured package logger
    """
    global _configured

    log_level = (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    app_env = (app_env or os.environ.get("APP_ENV", "development")).lower()
    log_dir = log_dir if log_dir is not None else os.environ.get("LOG_DIR")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level = getattr(logging, log_level, logging.INFO)
    logger.setLevel(level)
    logger.propagate = False

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if app_env == "production":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = HumanReadableFormatter(DEFAULT_LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        try:
            path = Path(log_dir)
            path.mkdir(exist_ok=True, parents=True)
            file_handler = RotatingFileHandler(
                path / f"{ROOT_LOGGER_NAME}.log",
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            # Don't fail initialization if log file can't be created
            logger.warning(f"Could not set up log file: {e}")

    _configured = True
    return logger


def get_logger(name: Optional[str] = None, **extra: Any) -> ContextAdapter:
    """
    Get a logger instance with context support.

    Args:
        name: Logger name (defaults to the package logger)
        extra: Context attached to every record logged through the adapter

    Returns:
        Context-aware logger
    """
    if not _configured:
        setup_logging()

    name = name or ROOT_LOGGER_NAME
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return ContextAdapter(logging.getLogger(name), dict(extra))
