"""Structured JSON logging for the Smart Closet app.

Closet records carry base64 photos and signed media URLs, so every field that
reaches a log line goes through :func:`redact_for_log` first.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import time
import uuid
from typing import Any, Dict, Iterator

CORRELATION_ID: contextvars.ContextVar[str | None] = contextvars.ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}

_MEDIA_FIELDS = {
    "image",
    "image_url",
    "original_image_url",
    "preview_url",
    "local_preview_url",
    "photo_url",
    "body_photo_url",
    "user_photo",
    "video_url",
    "api_key",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: event, correlation id and redacted extras."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        message = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "event": getattr(record, "event", message),
            "correlation_id": getattr(record, "correlation_id", None) or CORRELATION_ID.get(),
        }
        extras = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRIBUTES and k not in payload}
        payload.update(redact_for_log(extras))
        return json.dumps(payload)


def configure_logging(level: int | str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.root.handlers.clear()
    logging.basicConfig(level=level or os.getenv("LOG_LEVEL", "INFO"), handlers=[handler])


def redact_for_log(payload: Any) -> Any:
    """Replace photos, media URLs and keys with short placeholders.

    Inline images keep their size so oversized uploads are still visible in
    the logs.
    """

    if payload is None or isinstance(payload, (bool, int, float)):
        return payload
    if isinstance(payload, str):
        if payload.startswith("data:"):
            return f"[redacted-image:{len(payload)}b]"
        if payload.lower().startswith(("http://", "https://")):
            return "[redacted-url]"
        return payload
    if isinstance(payload, dict):
        return {k: "[redacted]" if k in _MEDIA_FIELDS else redact_for_log(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [redact_for_log(value) for value in payload]
    return str(payload)


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def ensure_correlation_id(correlation_id: str | None = None) -> str:
    """Adopt ``correlation_id`` or keep the current one, minting one if unset."""

    if correlation_id:
        CORRELATION_ID.set(correlation_id)
        return correlation_id
    current = CORRELATION_ID.get()
    if current:
        return current
    minted = uuid.uuid4().hex
    CORRELATION_ID.set(minted)
    return minted


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    correlation_id = ensure_correlation_id(fields.pop("correlation_id", None))
    exc_info = fields.pop("exc_info", None)
    logger.log(
        level,
        event,
        exc_info=exc_info,
        extra={"event": event, "correlation_id": correlation_id, **redact_for_log(fields)},
    )


@contextlib.contextmanager
def operation_context(name: str, **attributes: Any) -> Iterator[str]:
    """Run one app operation under its own correlation id.

    Emits ``operation_started`` and ``operation_finished`` (with duration) at
    DEBUG; the previous correlation id is restored on exit.
    """

    logger = get_logger("closet_app.operations")
    token = CORRELATION_ID.set(attributes.pop("correlation_id", None) or uuid.uuid4().hex)
    started = time.perf_counter()
    try:
        scoped_id = CORRELATION_ID.get()
        log_event(logger, logging.DEBUG, "operation_started", operation=name, **attributes)
        yield scoped_id
    finally:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        log_event(logger, logging.DEBUG, "operation_finished", operation=name, duration_ms=duration_ms)
        CORRELATION_ID.reset(token)


__all__ = [
    "CORRELATION_ID",
    "JsonFormatter",
    "configure_logging",
    "ensure_correlation_id",
    "get_logger",
    "log_event",
    "operation_context",
    "redact_for_log",
]
