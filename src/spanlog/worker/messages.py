"""Wire messages sent from a worker thread to the consuming thread.

Messages are plain dicts so they can cross any channel that copies by
value (``queue.Queue``, a multiprocessing pipe, JSON). Field names are
part of the protocol and intentionally camelCase.

- ``console``: a captured console/logging call with serialized args.
- ``log``: one structured log event.
- ``span``: span lifecycle event. ``"start"`` is informational only;
  ``"end"`` (which adds ``endTime`` and ``duration``) is the one the
  consumer turns into output.
"""

from __future__ import annotations

import time
from typing import Any, Literal, NotRequired, TypedDict, TypeGuard

ConsoleLevel = Literal["log", "debug", "info", "warn", "error", "trace"]


class WorkerConsoleMessage(TypedDict):
    """Captured console output."""

    type: Literal["console"]
    level: ConsoleLevel
    namespace: NotRequired[str | None]
    args: list[Any]
    timestamp: float


class WorkerLogMessage(TypedDict):
    """Structured log event."""

    type: Literal["log"]
    level: Literal["trace", "debug", "info", "warn", "error"]
    namespace: str
    message: str
    data: NotRequired[dict[str, Any]]
    timestamp: float


class WorkerSpanMessage(TypedDict):
    """Span start/end event."""

    type: Literal["span"]
    event: Literal["start", "end"]
    namespace: str
    spanId: str
    traceId: str
    parentId: str | None
    startTime: float
    endTime: NotRequired[float]
    duration: NotRequired[float]
    props: dict[str, Any]
    spanData: dict[str, Any]
    timestamp: float


WorkerMessage = WorkerConsoleMessage | WorkerLogMessage | WorkerSpanMessage


def now_ms() -> float:
    """Epoch milliseconds, local to the calling thread's clock."""
    return time.time() * 1000


# =============================================================================
# Type Guards
# =============================================================================


def is_worker_console_message(msg: object) -> TypeGuard[WorkerConsoleMessage]:
    """True if ``msg`` is a ``console`` relay message.

    Example:
        >>> is_worker_console_message({"type": "console", "level": "log", "args": []})
        True
    """
    return (
        isinstance(msg, dict)
        and msg.get("type") == "console"
        and isinstance(msg.get("level"), str)
        and isinstance(msg.get("args"), list)
    )


def is_worker_log_message(msg: object) -> TypeGuard[WorkerLogMessage]:
    """True if ``msg`` is a ``log`` relay message."""
    return (
        isinstance(msg, dict)
        and msg.get("type") == "log"
        and isinstance(msg.get("level"), str)
        and isinstance(msg.get("namespace"), str)
    )


def is_worker_span_message(msg: object) -> TypeGuard[WorkerSpanMessage]:
    """True if ``msg`` is a ``span`` relay message (``start`` or ``end``)."""
    return (
        isinstance(msg, dict)
        and msg.get("type") == "span"
        and isinstance(msg.get("event"), str)
    )


def is_worker_message(msg: object) -> TypeGuard[WorkerMessage]:
    """True for any of the three message variants."""
    return (
        is_worker_console_message(msg)
        or is_worker_log_message(msg)
        or is_worker_span_message(msg)
    )
