import json
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

from support_agent.config import settings

REQUEST_ID_HEADER = "X-Request-ID"
SERVICE_LOG_NAME = "support-agent"
TEXT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"

# Per-call request logs of the model API clients; they repeat what the providers log.
_NOISY_LOGGERS = ("httpx", "httpcore")

_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

# Attributes every LogRecord has; anything else arrived through ``extra``.
_LOG_RECORD_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "request_id"}


def generate_request_id() -> str:
    return uuid.uuid4().hex


def resolve_request_id(header_value: str | None) -> str:
    candidate = (header_value or "").strip()
    if candidate and len(candidate) <= 128 and candidate.isprintable():
        return candidate
    return generate_request_id()


def get_request_id() -> str:
    return _request_id_ctx.get()


def set_request_id(request_id: str) -> Token:
    return _request_id_ctx.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id_ctx.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamp the current request id on every record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def _json_safe(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, dict)):
        return json.loads(json.dumps(value, default=str))
    return str(value)


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_LOG_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None) or get_request_id(),
        }
        payload.update(
            (key, _json_safe(value))
            for key, value in record.__dict__.items()
            if key not in _LOG_RECORD_STANDARD_ATTRS
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "text":
        return logging.Formatter(TEXT_LOG_FORMAT)
    return JsonLogFormatter()


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Route every logger through one handler with request ids; safe to call twice."""
    level = (level or settings.log_level or "INFO").upper()
    formatter = _build_formatter((log_format or settings.log_format or "json").lower())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())

    for handler in root_logger.handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))
