"""Observability helpers for instrumenting external AI calls."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Awaitable, Callable, ParamSpec, TypeVar

from closet_app.logging_config import ensure_correlation_id, get_logger, log_event, redact_for_log

LOGGER = get_logger(__name__)
P = ParamSpec("P")
R = TypeVar("R")


def _preview_args(args: tuple, kwargs: dict, max_items: int = 4) -> dict:
    preview: dict = {}
    for idx, value in enumerate(args[:max_items]):
        preview[f"arg{idx}"] = value if isinstance(value, (str, int, float, bool)) else type(value).__name__
    for key, value in list(kwargs.items())[:max_items]:
        preview[key] = value if isinstance(value, (str, int, float, bool)) else type(value).__name__
    return redact_for_log(preview)


def instrument_call(call_name: str) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Wrap an async call to emit structured start/complete/failure logs with durations."""

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            correlation_id = ensure_correlation_id()
            start = time.perf_counter()
            log_event(
                LOGGER,
                logging.INFO,
                "ai_call_started",
                call=call_name,
                correlation_id=correlation_id,
                kwargs=_preview_args(args[1:], kwargs),
            )
            try:
                result = await func(*args, **kwargs)
            except Exception:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                log_event(
                    LOGGER,
                    logging.ERROR,
                    "ai_call_failed",
                    call=call_name,
                    correlation_id=correlation_id,
                    duration_ms=duration_ms,
                    exc_info=True,
                )
                raise
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            log_event(
                LOGGER,
                logging.INFO,
                "ai_call_completed",
                call=call_name,
                correlation_id=correlation_id,
                duration_ms=duration_ms,
            )
            return result

        return wrapper

    return decorator


__all__ = ["instrument_call"]
