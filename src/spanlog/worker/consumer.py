"""Consumer-side handling of relay messages.

The consuming thread turns relay messages back into local log calls so
that its own registry (level threshold, trace and debug filters, sink)
is the only filtering authority, however many worker threads feed it.

Span ``end`` messages are replayed as a fresh local span: created under
a cached logger for the message namespace with the relayed props, given
each relayed attribute through ``SpanData.set`` and then ended with the
worker-measured duration. ``start`` messages are informational and
ignored.
"""

from __future__ import annotations

import json
import logging
import queue
from collections.abc import Callable
from typing import Any

from spanlog.config import Registry, get_registry
from spanlog.formatting import to_jsonable
from spanlog.identity import Identity
from spanlog.logger import Logger
from spanlog.worker.messages import (
    WorkerConsoleMessage,
    WorkerLogMessage,
    WorkerMessage,
    WorkerSpanMessage,
    is_worker_console_message,
    is_worker_log_message,
    is_worker_span_message,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKER_NAMESPACE = "worker"

_CONSOLE_TO_LOG_LEVEL = {
    "trace": "trace",
    "debug": "debug",
    "log": "info",
    "info": "info",
    "warn": "warn",
    "error": "error",
}


def format_console_args(args: list[Any]) -> tuple[str, dict[str, Any] | None]:
    """Turn captured console args into a message and optional data.

    A single string is used as-is; otherwise strings are kept and other
    values JSON-encoded, joined by spaces. With two or more args, a
    trailing dict also becomes the record's structured data.

    Example:
        >>> format_console_args(["loaded", {"rows": 3}])
        ('loaded {"rows": 3}', {'rows': 3})
    """
    if not args:
        message = ""
    elif len(args) == 1 and isinstance(args[0], str):
        message = args[0]
    else:
        message = " ".join(
            arg if isinstance(arg, str) else json.dumps(to_jsonable(arg)) for arg in args
        )

    last = args[-1] if args else None
    data = last if len(args) > 1 and isinstance(last, dict) else None
    return message, data


class _LoggerCache:
    """Per-namespace local loggers, created on first use."""

    def __init__(self, registry: Registry) -> None:
        """Create an empty cache bound to ``registry``."""
        self._registry = registry
        self._loggers: dict[str, Logger] = {}

    def get(self, namespace: str) -> Logger:
        """Return the logger for ``namespace``, creating it on first use."""
        log = self._loggers.get(namespace)
        if log is None:
            log = Logger(Identity(namespace), self._registry)
            self._loggers[namespace] = log
        return log


def _log_at(log: Logger, level: str, message: str, data: dict[str, Any] | None) -> None:
    """Call the level method of ``log``; unknown levels are dropped with a debug note."""
    method = getattr(log, level, None) if level in _CONSOLE_TO_LOG_LEVEL.values() else None
    if method is None:
        logger.debug("Ignored relay message with unknown level", extra={"relay_level": level})
        return
    method(message, **(data or {}))


def create_worker_console_handler(
    default_namespace: str | None = None,
    logger: Logger | None = None,
    registry: Registry | None = None,
) -> Callable[[WorkerConsoleMessage], None]:
    """Create a handler for relayed ``console`` messages.

    Args:
        default_namespace: Namespace for messages that carry none.
            Default: ``"worker"``.
        logger: Logger to write every message through, regardless of
            its namespace.
        registry: Registry for created loggers; the default if None.

    Returns:
        Function to call with each console message.

    Example:
        >>> handle = create_worker_console_handler(default_namespace="km:worker")
        >>> handle({"type": "console", "level": "log", "args": ["hi"], "timestamp": 0})
    """
    cache = _LoggerCache(registry if registry is not None else get_registry())

    def handle(message: WorkerConsoleMessage) -> None:
        """Replay one console message through the resolved logger."""
        if logger is not None:
            log = logger
        else:
            namespace = (
                message.get("namespace") or default_namespace or DEFAULT_WORKER_NAMESPACE
            )
            log = cache.get(namespace)
        text, data = format_console_args(message.get("args", []))
        _log_at(log, _CONSOLE_TO_LOG_LEVEL.get(message["level"], ""), text, data)

    return handle


def create_worker_log_handler(
    enable_spans: bool = False,
    registry: Registry | None = None,
) -> Callable[[WorkerMessage], None]:
    """Create a handler for every relay message type.

    Args:
        enable_spans: Turn span output on in the registry.
        registry: Registry to emit through; the default if None.

    Returns:
        Function to call with each relay message. Messages that are not
        relay messages are ignored.

    Example:
        >>> handle = create_worker_log_handler(enable_spans=True)
        >>> while not channel.empty():
        ...     handle(channel.get_nowait())
    """
    reg = registry if registry is not None else get_registry()
    if enable_spans:
        reg.enable_spans()
    cache = _LoggerCache(reg)

    def handle_console(message: WorkerConsoleMessage) -> None:
        """Replay a console message under its namespace or ``"worker"``."""
        log = cache.get(message.get("namespace") or DEFAULT_WORKER_NAMESPACE)
        text, data = format_console_args(message.get("args", []))
        _log_at(log, _CONSOLE_TO_LOG_LEVEL.get(message["level"], ""), text, data)

    def handle_log(message: WorkerLogMessage) -> None:
        """Replay a log message at its level under its namespace."""
        log = cache.get(message["namespace"])
        _log_at(log, message["level"], message.get("message", ""), message.get("data"))

    def handle_span(message: WorkerSpanMessage) -> None:
        """Replay an ``end`` message as a fresh local span; ignore ``start``."""
        if message["event"] != "end":
            return
        log = cache.get(message["namespace"])
        span = log.span(None, **(message.get("props") or {}))
        for key, value in (message.get("spanData") or {}).items():
            span.span_data.set(key, value)
        span.end(duration=message.get("duration"))

    def handle(message: WorkerMessage) -> None:
        """Dispatch ``message`` by type; anything else is ignored."""
        if is_worker_console_message(message):
            handle_console(message)
        elif is_worker_log_message(message):
            handle_log(message)
        elif is_worker_span_message(message):
            handle_span(message)

    return handle


def drain(
    channel: queue.Queue[Any],
    handler: Callable[[Any], None],
    block: bool = False,
    timeout: float | None = None,
) -> int:
    """Dispatch pending relay messages on the calling thread.

    Call it from the consuming thread, e.g. once per event-loop tick or
    after joining workers.

    Args:
        channel: Queue the workers send into.
        handler: Message handler, e.g. from ``create_worker_log_handler``.
        block: Wait for the first message instead of returning at once
            when the queue is empty.
        timeout: Upper bound in seconds for that wait.

    Returns:
        Number of messages handled.
    """
    handled = 0
    wait = block
    while True:
        try:
            message = channel.get(block=wait, timeout=timeout if wait else None)
        except queue.Empty:
            return handled
        wait = False
        try:
            handler(message)
        finally:
            handled += 1
