"""In-process instrumentation for storage service operations.

Each instrumented block produces one event, e.g. ``service_upload.dropbox_storage``,
carrying a mutable payload dict. The block may add results to the payload
(``exist``, ``url``) before it is logged and handed to subscribers.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List

from dropbox_storage.core.errors import classify_error

EVENT_NAMESPACE = "dropbox_storage"

Subscriber = Callable[[str, Dict[str, Any]], None]

_SUBSCRIBERS: List[Subscriber] = []

# Payload entries never written to log records.
_UNLOGGED_FIELDS = {"url", "checksum", "exception"}


def subscribe(callback: Subscriber) -> Subscriber:
    """Register a callback invoked as ``callback(event_name, payload)``."""
    _SUBSCRIBERS.append(callback)
    return callback


def unsubscribe(callback: Subscriber) -> None:
    if callback in _SUBSCRIBERS:
        _SUBSCRIBERS.remove(callback)


def event_name(operation: str) -> str:
    return f"service_{operation}.{EVENT_NAMESPACE}"


@contextmanager
def instrument(
    operation: str,
    logger: logging.Logger,
    **payload: Any,
) -> Iterator[Dict[str, Any]]:
    name = event_name(operation)
    started = time.perf_counter()
    failed = False
    try:
        yield payload
    except GeneratorExit:
        # Consumer stopped iterating a streamed download
        failed = True
        payload["error_type"] = "ABORTED"
        raise
    except Exception as exc:
        failed = True
        payload["exception"] = (type(exc).__name__, str(exc))
        payload["error_type"] = classify_error(exc)
        raise
    finally:
        payload["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)

        extra = {k: v for k, v in payload.items() if k not in _UNLOGGED_FIELDS}
        extra["operation"] = operation
        target = payload.get("key", payload.get("prefix", ""))
        message = f"[{payload.get('service', 'Storage')}] {operation} {target} ({payload['duration_ms']}ms)"
        if failed:
            logger.warning(f"{message} failed", extra=extra)
        else:
            logger.info(message, extra=extra)

        for callback in list(_SUBSCRIBERS):
            try:
                callback(name, payload)
            except Exception:
                logger.exception(f"Instrumentation subscriber failed for {name}")
