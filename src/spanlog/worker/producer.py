"""Worker-side loggers that relay every event to the consuming thread.

A worker logger never writes output and holds no filter state. Log
calls become ``log`` messages; spans are timed locally (with worker-side
ids, ``wsp_``/``wtr_``) and become a ``start`` message on creation and
one ``end`` message when they end. The consumer applies all filtering.

``send`` is fire-and-forget: if it raises (channel closed while the
worker shuts down) the message is dropped silently.

Example:
    Worker thread::

        log = create_worker_logger(channel.put_nowait, "km:worker:parse")
        log.info("processing", file="test.md")
        with log.span("parse") as span:
            span.span_data["lines"] = 100

    Consumer thread::

        handle = create_worker_log_handler()
        drain(channel, handle)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

from spanlog.identity import Identity
from spanlog.levels import OutputLogLevel
from spanlog.logger import BaseLogger
from spanlog.spans import IdGenerator, SpanData, SpanMeta
from spanlog.worker.messages import (
    WorkerLogMessage,
    WorkerMessage,
    WorkerSpanMessage,
    now_ms,
)
from spanlog.worker.serialize import serialize_arg

logger = logging.getLogger(__name__)

#: Channel send function, e.g. ``queue.Queue.put_nowait``.
SendFn = Callable[[WorkerMessage], None]

_worker_ids = IdGenerator(span_prefix="wsp_", trace_prefix="wtr_")


def reset_worker_ids() -> None:
    """Reset worker-side id counters (for tests)."""
    _worker_ids.reset()


def _safe_send(send: SendFn, message: WorkerMessage) -> None:
    """Call ``send``; failures are logged at debug level and dropped."""
    try:
        send(message)
    except Exception:
        # Channel may be closed during shutdown; relay is best-effort
        logger.debug("Dropped relay message", extra={"relay_type": message["type"]})


def _wire_dict(values: Mapping[str, Any]) -> dict[str, Any]:
    """Copy ``values`` into wire-safe data.

    The message never shares objects with the worker thread: containers
    are copied, and functions, exceptions, circular references and other
    values that cannot cross a by-value channel become placeholders
    (see ``serialize_arg``).
    """
    return {str(key): serialize_arg(value, depth=1) for key, value in values.items()}


class WorkerLogger(BaseLogger):
    """Logger whose events are sent over a relay channel.

    Args:
        send: Channel send function.
        namespace: Logger namespace.
        props: Props merged into every event's data.
        parent_span_id: Id of the enclosing worker span, if any.
        trace_id: Trace of the enclosing worker span, if any.
    """

    def __init__(
        self,
        send: SendFn,
        namespace: str,
        props: dict[str, Any] | None = None,
        parent_span_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Create a logger relaying through ``send``; see the class docstring."""
        super().__init__(Identity(namespace, props or {}), parent_span_id, trace_id)
        self._send = send

    def enabled(self, level: OutputLogLevel) -> bool:
        """Always True: the consumer does the filtering."""
        # Filtering happens on the consumer; every level is relayed
        return True

    def _write(self, level: OutputLogLevel, msg: Any, data: dict[str, Any]) -> None:
        """Send one ``log`` message with wire-safe data."""
        text = msg() if callable(msg) else msg
        message: WorkerLogMessage = {
            "type": "log",
            "level": level,
            "namespace": self.name,
            "message": text,
            "timestamp": now_ms(),
        }
        merged = {**self.props, **data}
        if merged:
            message["data"] = _wire_dict(merged)
        _safe_send(self._send, message)

    def logger(self, namespace: str | None = None, /, **props: Any) -> WorkerLogger:
        """Create a child worker logger (extends namespace, inherits props)."""
        return self._child(self._identity.derive(namespace, props))

    def span(self, namespace: str | None = None, /, **props: Any) -> WorkerSpanLogger:
        """Start a child worker span; it sends ``start`` immediately."""
        return self._span(self._identity.derive(namespace, props))

    def _child(self, identity: Identity) -> WorkerLogger:
        """Create a plain worker logger with the same span linkage."""
        return WorkerLogger(
            self._send,
            identity.name,
            dict(identity.props),
            self._parent_span_id,
            self._trace_id,
        )

    def _span(self, identity: Identity) -> WorkerSpanLogger:
        """Start a span with a worker-side id under this logger's span linkage."""
        meta = SpanMeta.start(
            _worker_ids,
            parent_id=self._parent_span_id,
            trace_id=self._trace_id,
        )
        return WorkerSpanLogger(self._send, identity, meta)


class WorkerSpanLogger(WorkerLogger):
    """Worker logger with an active span.

    Sends ``start`` when created and ``end`` exactly once when ended.
    """

    def __init__(self, send: SendFn, identity: Identity, meta: SpanMeta) -> None:
        """Wrap ``meta`` and send the ``start`` message.

        Args:
            send: Channel send function.
            identity: Namespace and props of the span.
            meta: Freshly started span state.
        """
        super().__init__(
            send,
            identity.name,
            dict(identity.props),
            parent_span_id=meta.id,
            trace_id=meta.trace_id,
        )
        self._meta = meta
        self._span_data = SpanData(meta, identity.name)
        _safe_send(self._send, self._span_message("start"))

    @property
    def span_data(self) -> SpanData:
        """Caller-facing accessor for this span's attributes."""
        return self._span_data

    def _span_message(self, event: str) -> WorkerSpanMessage:
        """Build a ``span`` message; ``endTime``/``duration`` only for ``end``."""
        message: WorkerSpanMessage = {
            "type": "span",
            "event": "start" if event == "start" else "end",
            "namespace": self.name,
            "spanId": self._meta.id,
            "traceId": self._meta.trace_id,
            "parentId": self._meta.parent_id,
            "startTime": self._meta.start_time,
            "props": _wire_dict(self.props),
            "spanData": _wire_dict(self._meta.attrs),
            "timestamp": now_ms(),
        }
        if event == "end" and self._meta.end_time is not None:
            message["endTime"] = self._meta.end_time
            message["duration"] = self._meta.duration
        return message

    def end(self) -> None:
        """End the span and relay its ``end`` event (once)."""
        if self._meta.finish():
            _safe_send(self._send, self._span_message("end"))

    def __enter__(self) -> WorkerSpanLogger:
        """Return the span itself."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """End the span; an exception sets the ``error`` attribute first."""
        if exc_type is not None and "error" not in self._meta.attrs:
            self._meta.set_attribute("error", exc_type.__name__)
        self.end()


def create_worker_logger(
    send: SendFn,
    namespace: str,
    props: dict[str, Any] | None = None,
    parent_span_id: str | None = None,
    trace_id: str | None = None,
) -> WorkerLogger:
    """Create a logger for use in a worker thread.

    Args:
        send: Channel send function, e.g. ``queue.put_nowait``.
        namespace: Logger namespace, e.g. ``"km:worker:parse"``.
        props: Initial props.
        parent_span_id: Parent span id for nesting under a known span.
        trace_id: Trace id to continue.

    Returns:
        WorkerLogger. Pair it with ``create_worker_log_handler`` on the
        consuming thread.
    """
    return WorkerLogger(send, namespace, props, parent_span_id, trace_id)
