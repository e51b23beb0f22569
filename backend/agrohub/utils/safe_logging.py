"""Log helpers that keep credentials and tokens out of log lines.

`sanitize_for_log` walks dicts/lists/objects and redacts any key that
looks sensitive. `log_store_failure` is the one place data-store errors
from the isolation layer get logged.
"""

import logging
import re
import sys
from typing import Any

SENSITIVE_FIELDS = (
    "password",
    "token",
    "secret",
    "apikey",
    "api_key",
    "authorization",
    "creditcard",
    "credit_card",
    "cvv",
    "ssn",
    "cpf",
    "cnpj",
)

MAX_DEPTH = 10
MAX_STRING = 500
MAX_ITEMS = 20

REDACTED = "[REDACTED]"

# key=value or key: value pairs inside free text (driver messages, DSNs)
_INLINE_SECRET = re.compile(
    r"(?i)\b(password|passwd|pwd|token|secret|api_?key|authorization)(\s*[=:]\s*)[^\s,;&]+"
)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(field in lowered for field in SENSITIVE_FIELDS)


def sanitize_for_log(value: Any, depth: int = 0) -> Any:
    """Return a copy of `value` safe to put in a log record."""
    if depth > MAX_DEPTH:
        return "[Max Depth Reached]"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > MAX_STRING:
            return value[:MAX_STRING] + "...[truncated]"
        return value

    if isinstance(value, (list, tuple, set, frozenset)):
        items = []
        for index, item in enumerate(value):
            if index >= MAX_ITEMS:
                items.append("[Array truncated]")
                break
            items.append(sanitize_for_log(item, depth + 1))
        return items

    if isinstance(value, dict):
        sanitized = {}
        for key, item in value.items():
            if _is_sensitive(str(key)):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_for_log(item, depth + 1)
        return sanitized

    return sanitize_for_log(str(value), depth + 1)


def redact_text(text: str) -> str:
    return _INLINE_SECRET.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)


def describe_error(exc: BaseException) -> dict:
    """Reduce an exception to loggable fields.

    Driver exceptions often echo the statement and bound parameters, so
    only the type and the first line of the message are kept, with inline
    credentials masked.
    """
    lines = str(exc).splitlines()
    return {
        "error_type": type(exc).__name__,
        "error_message": sanitize_for_log(redact_text(lines[0]) if lines else ""),
    }


def log_store_failure(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log a data-store failure with sanitized context and no traceback locals."""
    logger.error(
        message,
        extra={**describe_error(exc), "context": sanitize_for_log(context)},
    )


def configure_logging(level: str = "INFO") -> None:
    """Root logger setup for the API process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
