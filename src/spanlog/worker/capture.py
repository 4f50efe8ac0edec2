"""Console capture for worker threads.

Interception goes through a narrow interface, ``ConsoleCapture``:
``install(handler)`` starts delivering captured calls to ``handler`` as
``(level, args)``, ``uninstall()`` stops, and ``fallback(level, args)``
writes straight to the unintercepted output when relaying fails.

The bundled implementation, ``LoggingCapture``, captures records of the
standard ``logging`` module. It attaches a handler to a target logger
(the root logger by default) and only picks up records created on the
thread that installed it, so a worker can forward its own logging
without stealing the consumer thread's records.

Example:
    # At the top of the worker thread
    forward_console(channel.put_nowait, namespace="km:worker:parse")
    logging.getLogger(__name__).warning("slow input")   # forwarded

    # Before the worker exits
    restore_console()
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable
from typing import IO, Any, Protocol, runtime_checkable

from spanlog.levels import TRACE
from spanlog.worker.messages import ConsoleLevel, WorkerConsoleMessage, now_ms
from spanlog.worker.serialize import serialize_arg

#: Receives each captured call as ``(level, args)``.
CaptureHandler = Callable[[ConsoleLevel, list[Any]], None]


@runtime_checkable
class ConsoleCapture(Protocol):  # pragma: no cover
    """Install/uninstall interface for console interception."""

    def install(self, handler: CaptureHandler) -> None:
        """Start delivering captured calls to ``handler``."""
        ...

    def uninstall(self) -> None:
        """Stop capturing and restore normal output."""
        ...

    def fallback(self, level: ConsoleLevel, args: list[Any]) -> None:
        """Write a call directly to the original, unintercepted output."""
        ...


def _console_level(levelno: int) -> ConsoleLevel:
    """Map a stdlib level number to a console level name."""
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    if levelno > TRACE:
        return "debug"
    return "trace"


class _CaptureHandler(logging.Handler):
    """Forwards records of one thread to a capture handler."""

    # Thread-local recursion guard to prevent infinite loops
    _local = threading.local()

    def __init__(self, on_call: CaptureHandler, thread_id: int, level: int) -> None:
        """Create a handler for records of ``thread_id`` only."""
        super().__init__(level)
        self._on_call = on_call
        self._thread_id = thread_id

    def emit(self, record: logging.LogRecord) -> None:
        """Deliver ``record`` if it came from the capturing thread."""
        if record.thread != self._thread_id:
            return
        if getattr(self._local, "emitting", False):
            return

        try:
            self._local.emitting = True
            args: list[Any] = [record.getMessage()]
            if record.exc_info and record.exc_info[1] is not None:
                args.append(record.exc_info[1])
            self._on_call(_console_level(record.levelno), args)
        except Exception:
            # Don't raise exceptions in logging
            self.handleError(record)
        finally:
            self._local.emitting = False


class LoggingCapture:
    """Capture stdlib logging records emitted on the installing thread.

    Args:
        target: Logger to attach to. Default: the root logger.
        level: Minimum record level to capture.
        stream: Fallback output. Default: ``sys.__stderr__``, the
            process's original stderr.
    """

    def __init__(
        self,
        target: logging.Logger | None = None,
        level: int = logging.NOTSET,
        stream: IO[str] | None = None,
    ) -> None:
        """Create an uninstalled capture; see the class docstring."""
        self._target = target if target is not None else logging.getLogger()
        self._level = level
        self._stream = stream
        self._handler: _CaptureHandler | None = None

    @property
    def installed(self) -> bool:
        """True while a handler is attached."""
        return self._handler is not None

    def install(self, handler: CaptureHandler) -> None:
        """Attach a handler delivering this thread's records to ``handler``.

        A previous installation of this capture is removed first.
        """
        self.uninstall()
        self._handler = _CaptureHandler(handler, threading.get_ident(), self._level)
        self._target.addHandler(self._handler)

    def uninstall(self) -> None:
        """Detach the handler; safe to call when not installed."""
        if self._handler is not None:
            self._target.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def fallback(self, level: ConsoleLevel, args: list[Any]) -> None:
        """Write ``LEVEL text`` to the original stderr (or the configured stream)."""
        stream = self._stream if self._stream is not None else sys.__stderr__
        if stream is None:
            return
        text = " ".join(str(arg) for arg in args)
        stream.write(f"{level.upper()} {text}\n")


# =============================================================================
# Forwarding
# =============================================================================

_active: list[ConsoleCapture] = []
_active_lock = threading.Lock()


def forward_console(
    send: Callable[[WorkerConsoleMessage], None],
    namespace: str | None = None,
    capture: ConsoleCapture | None = None,
) -> ConsoleCapture:
    """Forward captured console calls over a relay channel.

    Each captured call is serialized into a ``console`` message. If
    ``send`` raises (the channel is closing), the call is written to the
    capture's fallback output instead.

    Args:
        send: Channel send function.
        namespace: Namespace attached to every message.
        capture: Interception to use. Default: a new LoggingCapture for
            the calling thread.

    Returns:
        The installed capture; pass it to ``restore_console`` or call
        its ``uninstall()`` to stop forwarding.
    """
    capture = capture if capture is not None else LoggingCapture()

    def on_call(level: ConsoleLevel, args: list[Any]) -> None:
        """Serialize a captured call and send it, falling back on failure."""
        message: WorkerConsoleMessage = {
            "type": "console",
            "level": level,
            "namespace": namespace,
            "args": [serialize_arg(arg) for arg in args],
            "timestamp": now_ms(),
        }
        try:
            send(message)
        except Exception:
            # Worker may be shutting down; fall back to original output
            capture.fallback(level, args)

    capture.install(on_call)
    with _active_lock:
        _active.append(capture)
    return capture


def restore_console(capture: ConsoleCapture | None = None) -> None:
    """Stop forwarding.

    Args:
        capture: The capture to uninstall. None uninstalls every capture
            installed by ``forward_console``.
    """
    with _active_lock:
        if capture is None:
            targets = list(_active)
            _active.clear()
        else:
            targets = [capture]
            if capture in _active:
                _active.remove(capture)
    for target in targets:
        target.uninstall()
