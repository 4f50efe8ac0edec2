"""Loggers and span loggers.

A span is a logger plus a time interval: ``span()`` returns a logger
that can log like any other and additionally times itself until it is
ended, then writes one ``SPAN`` record.

Example:
    log = create_logger("myapp", version="1.0")

    # Simple logging, keyword arguments become structured data
    log.info("starting", port=8080)

    # Child loggers extend the namespace and inherit props
    db = log.logger("db", pool=4)          # myapp:db

    # Spans end on every exit path of the with block
    with log.span("import", file="data.csv") as task:
        task.info("importing")
        task.span_data["count"] = 42
    # -> SPAN myapp:import (15ms) | count=42 file=data.csv ...

    # Skip expensive argument construction when the level is off
    if log.enabled("debug"):
        log.debug("state", snapshot=build_snapshot())
    log.trace(lambda: f"very verbose: {expensive()}")
"""

from __future__ import annotations

import traceback
import warnings
from abc import ABC, abstractmethod
from collections.abc import Mapping
from types import TracebackType
from typing import Any

from spanlog.config import Registry, get_registry
from spanlog.emission import Message, emit_log, emit_span
from spanlog.identity import Identity
from spanlog.levels import OutputLogLevel, should_emit
from spanlog.spans import SpanData, SpanMeta


def error_fields(error: BaseException) -> tuple[str, dict[str, Any]]:
    """Extract message and structured fields from an exception.

    Returns:
        ``(message, fields)`` where fields holds ``error_type``,
        ``error_stack`` and, when the exception carries one,
        ``error_code`` (``errno`` or ``code`` attribute).
    """
    fields: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_stack": "".join(traceback.format_exception(error)).rstrip(),
    }
    code = getattr(error, "errno", None)
    if code is None:
        code = getattr(error, "code", None)
    if code is not None:
        fields["error_code"] = code
    return str(error) or type(error).__name__, fields


# =============================================================================
# Base Logger
# =============================================================================


class BaseLogger(ABC):
    """Logging surface shared by local and worker-side loggers.

    Subclasses decide what a write means (emit locally, or relay to
    another thread) and how children and spans are created.
    """

    def __init__(
        self,
        identity: Identity,
        parent_span_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Create a logger for ``identity``.

        Args:
            identity: Namespace and props.
            parent_span_id: Id of the enclosing span, if any.
            trace_id: Trace of the enclosing span, if any.
        """
        self._identity = identity
        # Span linkage inherited by spans created from this logger
        self._parent_span_id = parent_span_id
        self._trace_id = trace_id

    @property
    def name(self) -> str:
        """Logger namespace, e.g. ``"myapp:import"``."""
        return self._identity.name

    @property
    def props(self) -> Mapping[str, Any]:
        """Read-only props inherited from ancestors plus own props."""
        return self._identity.props

    @property
    def identity(self) -> Identity:
        """Namespace and props of this logger."""
        return self._identity

    @property
    def span_data(self) -> SpanData | None:
        """Span data for span loggers, None for plain loggers."""
        return None

    # -------------------------------------------------------------------------
    # Logging methods
    # -------------------------------------------------------------------------

    def trace(self, msg: Message, /, **data: Any) -> None:
        """Log at trace level.

        Args:
            msg: Message text, or a zero-argument callable producing it.
            **data: Structured data for this record.
        """
        self._write("trace", msg, data)

    def debug(self, msg: Message, /, **data: Any) -> None:
        """Log at debug level."""
        self._write("debug", msg, data)

    def info(self, msg: Message, /, **data: Any) -> None:
        """Log at info level."""
        self._write("info", msg, data)

    def warn(self, msg: Message, /, **data: Any) -> None:
        """Log at warn level."""
        self._write("warn", msg, data)

    warning = warn

    def error(self, msg: Message | BaseException, /, **data: Any) -> None:
        """Log at error level.

        Accepts an exception instead of a message: its text becomes the
        message and ``error_type``/``error_stack``/``error_code`` are
        added to the data.
        """
        if isinstance(msg, BaseException):
            text, fields = error_fields(msg)
            self._write("error", text, {**data, **fields})
        else:
            self._write("error", msg, data)

    @abstractmethod
    def enabled(self, level: OutputLogLevel) -> bool:
        """Return True if a record at ``level`` could produce output."""

    @abstractmethod
    def _write(self, level: OutputLogLevel, msg: Message, data: dict[str, Any]) -> None:
        """Deliver one log event."""

    # -------------------------------------------------------------------------
    # Children
    # -------------------------------------------------------------------------

    def logger(self, namespace: str | None = None, /, **props: Any) -> BaseLogger:
        """Create a child logger (extends namespace, inherits props)."""
        return self._child(self._identity.derive(namespace, props))

    def span(self, namespace: str | None = None, /, **props: Any) -> BaseLogger:
        """Create a child span (extends namespace, inherits props, adds timing)."""
        return self._span(self._identity.derive(namespace, props))

    def child(self, context: str) -> BaseLogger:
        """Deprecated alias for ``logger(context)``."""
        warnings.warn(
            "child() is deprecated, use logger() instead",
            DeprecationWarning,
            stacklevel=2,
        )
        return self.logger(context)

    def end(self) -> None:
        """End the span. No-op for plain loggers."""

    @abstractmethod
    def _child(self, identity: Identity) -> BaseLogger:
        """Create a plain child logger for ``identity``."""

    @abstractmethod
    def _span(self, identity: Identity) -> BaseLogger:
        """Start a span logger for ``identity``."""

    def __repr__(self) -> str:
        """Show the class and namespace."""
        return f"{type(self).__name__}({self.name!r})"


# =============================================================================
# Local Loggers
# =============================================================================


class Logger(BaseLogger):
    """Logger that writes through a registry's emission pipeline.

    Args:
        identity: Namespace and props.
        registry: Configuration and sink. Defaults to the global registry.
        parent_span_id: Id of the enclosing span, if any.
        trace_id: Trace of the enclosing span, if any.
    """

    def __init__(
        self,
        identity: Identity,
        registry: Registry | None = None,
        parent_span_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Create a logger bound to ``registry``; see the class docstring."""
        super().__init__(identity, parent_span_id, trace_id)
        self._registry = registry if registry is not None else get_registry()

    @property
    def registry(self) -> Registry:
        """Registry this logger filters against and writes to."""
        return self._registry

    def enabled(self, level: OutputLogLevel) -> bool:
        """Check level threshold and debug filter for this namespace.

        Use it to guard expensive argument construction::

            if log.enabled("debug"):
                log.debug("state", dump=expensive_dump())
        """
        return should_emit(level, self._registry.get_log_level()) and (
            self._registry.debug_filter.allowed(self.name)
        )

    def _write(self, level: OutputLogLevel, msg: Message, data: dict[str, Any]) -> None:
        """Hand the event to the emission pipeline."""
        emit_log(self._registry, self._identity, level, msg, data)

    def logger(self, namespace: str | None = None, /, **props: Any) -> Logger:
        """Create a child logger (extends namespace, inherits props and span linkage)."""
        return self._child(self._identity.derive(namespace, props))

    def span(self, namespace: str | None = None, /, **props: Any) -> SpanLogger:
        """Start a child span (extends namespace, inherits props, adds timing).

        Example:
            >>> with log.span("import", file="data.csv") as task:
            ...     task.span_data["count"] = 42
        """
        return self._span(self._identity.derive(namespace, props))

    def _child(self, identity: Identity) -> Logger:
        """Create a plain logger sharing the registry and span linkage."""
        return Logger(identity, self._registry, self._parent_span_id, self._trace_id)

    def _span(self, identity: Identity) -> SpanLogger:
        """Start a span under this logger's span linkage."""
        meta = SpanMeta.start(
            self._registry.ids,
            parent_id=self._parent_span_id,
            trace_id=self._trace_id,
        )
        return SpanLogger(identity, self._registry, meta)


class SpanLogger(Logger):
    """Logger with an active span.

    Loggers and spans created from it are nested under this span: they
    share its trace id and record its id as their parent.

    The span must be ended exactly once; use it as a context manager so
    that happens on every exit path, or call ``end()`` yourself. Further
    ``end()`` calls do nothing.
    """

    def __init__(self, identity: Identity, registry: Registry, meta: SpanMeta) -> None:
        """Create a span logger for ``meta``; children nest under it."""
        super().__init__(identity, registry, parent_span_id=meta.id, trace_id=meta.trace_id)
        self._meta = meta
        self._span_data = SpanData(meta, identity.name)

    @property
    def span_data(self) -> SpanData:
        """Caller-facing accessor for this span's attributes."""
        return self._span_data

    def end(self, duration: float | None = None) -> None:
        """End the span and write its record.

        Args:
            duration: Milliseconds to report instead of the measured
                time; used when replaying a span timed on another thread.
        """
        if not self._meta.finish(duration):
            return

        self._registry.collect(self._span_data)
        emit_span(
            self._registry,
            self._identity,
            self._meta.duration,
            {
                "span_id": self._meta.id,
                "trace_id": self._meta.trace_id,
                "parent_id": self._meta.parent_id,
                **self._identity.props,
                **self._meta.attrs,
            },
        )

    def __enter__(self) -> SpanLogger:
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


def create_logger(name: str, /, registry: Registry | None = None, **props: Any) -> Logger:
    """Create a logger for a component.

    Log levels (most to least verbose): trace < debug < info < warn <
    error < silent. Default threshold: info.

    Args:
        name: Root namespace, e.g. ``"myapp"``.
        registry: Configuration to bind to; the default registry if None.
        **props: Props attached to every record of this logger and its
            descendants.

    Returns:
        Logger.

    Example:
        >>> log = create_logger("myapp", version="1.0")
        >>> log.info("starting")
        >>> with log.span("import") as task:
        ...     task.span_data["count"] = 42
    """
    return Logger(Identity(name, props), registry)
