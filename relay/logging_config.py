"""JSON logging configuration for the WhatsApp relay."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context") and record.context:
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure JSON logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger namespaced under the relay."""
    return logging.getLogger(f"relay.{name}")


def mask_user_id(user_id: Optional[str]) -> str:
    """Chat user ids are phone numbers; only the last four digits reach the logs."""
    if not user_id:
        return "unknown"
    if len(user_id) <= 4:
        return user_id
    return f"***{user_id[-4:]}"


class UserLoggerAdapter(logging.LoggerAdapter):
    """Attach the masked chat user id (and any per-call context) to every record."""

    def __init__(self, logger: logging.Logger, user_id: Optional[str], **extra: Any):
        super().__init__(logger, {"user": mask_user_id(user_id), **extra})
        self.user_id = user_id

    def bind(self, **extra: Any) -> "UserLoggerAdapter":
        """Return an adapter for the same user with more fixed context."""
        adapter = UserLoggerAdapter(self.logger, self.user_id)
        adapter.extra = {**self.extra, **extra}
        return adapter

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            combined_context = {**self.extra, **(context or {})}
            kwargs["extra"] = {"context": combined_context}
        return msg, kwargs
