"""Configuration registry for spanlog.

All mutable process-wide state of one side of the system lives in a
single ``Registry``: the level threshold, span output switch, the trace
and debug namespace filters, the output format, span/trace id counters,
span collection, and the output sink.

A default registry is created from the environment on first use and
is what module-level functions and ``create_logger`` use. Tests or
embedders can build their own and pass it explicitly, or swap the
default with ``set_registry``.

Environment variables (read by ``Registry.from_env``):

- ``LOG_LEVEL``: trace | debug | info | warn | error | silent (default info)
- ``TRACE``: ``1``/``true`` enables span output; a comma list
  (``TRACE=myapp,other``) enables spans for those namespaces only
- ``DEBUG``: comma list of namespaces for logs, ``-`` prefix excludes,
  ``*``/``1``/``true`` means all (``DEBUG=myapp,-myapp:noisy``). Setting
  it lowers the threshold to at least ``debug``.
- ``TRACE_FORMAT``: ``json`` selects JSON output

Example:
    >>> from spanlog.config import get_log_level, set_debug_filter, set_log_level
    >>> set_log_level("warn")
    >>> set_debug_filter(["myapp", "-myapp:noisy"])
    >>> get_log_level()   # raised to debug by the filter
    'debug'
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import IO

from spanlog.filters import FilterSet, parse_pattern_list
from spanlog.levels import (
    DEFAULT_LEVEL,
    LEVEL_PRIORITY,
    LogLevel,
    parse_level,
    should_emit,
    validate_level,
)
from spanlog.sink import OUTPUT_LOGGER_NAME, LogWriter, OutputMode, Sink
from spanlog.spans import IdGenerator, SpanData

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true"})


# =============================================================================
# Registry
# =============================================================================


class Registry:
    """Owner of all spanlog configuration and counters for one side.

    Reads are lock-free; mutations are serialized by an internal lock so
    a consumer thread can be reconfigured while it is draining relay
    messages.

    Args:
        level: Initial level threshold.
        spans_enabled: Whether span records are written at all.
        trace_filter: Namespace filter applied to spans.
        debug_filter: Namespace filter applied to logs and spans.
        json_format: JSON output instead of console lines.
        sink: Output sink. A new default sink is created if omitted.
        ids: Span/trace id generator.
    """

    def __init__(
        self,
        level: LogLevel = DEFAULT_LEVEL,
        spans_enabled: bool = False,
        trace_filter: FilterSet | None = None,
        debug_filter: FilterSet | None = None,
        json_format: bool = False,
        sink: Sink | None = None,
        ids: IdGenerator | None = None,
    ) -> None:
        """Create a registry; see the class docstring for the arguments."""
        self._level: LogLevel = validate_level(level)
        self._spans_enabled = spans_enabled
        self._trace_filter = trace_filter or FilterSet()
        self._debug_filter = debug_filter or FilterSet()
        self.sink = sink if sink is not None else Sink(json_format=json_format)
        if sink is not None and json_format != sink.json_format:
            sink.set_json_format(json_format)
        self.ids = ids if ids is not None else IdGenerator()
        self._collecting = False
        self._collected: list[SpanData] = []
        self._lock = threading.Lock()

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        sink: Sink | None = None,
    ) -> Registry:
        """Build a registry from environment variables.

        Unknown values never raise: an unrecognised ``LOG_LEVEL`` falls
        back to ``info`` and filter patterns are taken literally.

        Args:
            environ: Mapping to read; defaults to ``os.environ``.
            sink: Output sink to use.

        Returns:
            Configured Registry.

        Example:
            >>> reg = Registry.from_env({"DEBUG": "*", "TRACE": "1"})
            >>> reg.get_log_level(), reg.spans_enabled
            ('debug', True)
        """
        env = os.environ if environ is None else environ

        level = parse_level(env.get("LOG_LEVEL"))

        spans_enabled = False
        trace_filter = FilterSet()
        trace_env = env.get("TRACE")
        if trace_env:
            spans_enabled = True
            if trace_env.strip().lower() not in _TRUTHY:
                trace_filter = FilterSet.from_patterns(parse_pattern_list(trace_env))

        debug_filter = FilterSet()
        debug_env = env.get("DEBUG")
        if debug_env:
            debug_filter = FilterSet.from_patterns(
                parse_pattern_list(debug_env), collapse_wildcards=True
            )
            level = _at_least_debug(level)

        json_format = env.get("TRACE_FORMAT", "").strip().lower() == "json"

        return cls(
            level=level,
            spans_enabled=spans_enabled,
            trace_filter=trace_filter,
            debug_filter=debug_filter,
            json_format=json_format,
            sink=sink,
        )

    # -------------------------------------------------------------------------
    # Level threshold
    # -------------------------------------------------------------------------

    def set_log_level(self, level: LogLevel) -> None:
        """Set the minimum level for log records.

        Args:
            level: One of trace, debug, info, warn, error, silent.

        Raises:
            ValueError: If ``level`` is not a known level name.
        """
        level = validate_level(level)
        with self._lock:
            self._level = level
        logger.debug("Log level set", extra={"level": level})

    def get_log_level(self) -> LogLevel:
        """Return the current level threshold."""
        return self._level

    def should_log(self, level: str) -> bool:
        """True if a record at ``level`` passes the threshold."""
        return should_emit(level, self._level)

    # -------------------------------------------------------------------------
    # Spans
    # -------------------------------------------------------------------------

    def enable_spans(self) -> None:
        """Turn span output on (filters still apply)."""
        with self._lock:
            self._spans_enabled = True

    def disable_spans(self) -> None:
        """Turn span output off."""
        with self._lock:
            self._spans_enabled = False

    @property
    def spans_enabled(self) -> bool:
        """True when span records may be written."""
        return self._spans_enabled

    def set_trace_filter(self, namespaces: Iterable[str] | None) -> None:
        """Restrict span output to matching namespaces.

        Args:
            namespaces: Namespace patterns (``-`` prefix excludes). None or
                empty clears the filter but leaves span output as it is;
                anything else also enables span output.
        """
        patterns = list(namespaces) if namespaces is not None else []
        with self._lock:
            self._trace_filter = FilterSet.from_patterns(patterns)
            if patterns:
                self._spans_enabled = True

    def get_trace_filter(self) -> list[str] | None:
        """Return configured span patterns, excludes re-marked with ``-``."""
        return self._trace_filter.to_patterns()

    @property
    def trace_filter(self) -> FilterSet:
        """Filter applied to span namespaces."""
        return self._trace_filter

    # -------------------------------------------------------------------------
    # Debug namespace filter
    # -------------------------------------------------------------------------

    def set_debug_filter(self, namespaces: Iterable[str] | None) -> None:
        """Restrict log (and span) output to matching namespaces.

        Works like the ``DEBUG`` variable of the ``debug`` npm package:
        ``["myapp"]`` allows ``myapp`` and its descendants, ``"-x"``
        excludes ``x`` and its descendants, ``"*"`` allows everything.
        A non-empty filter also raises the threshold to at least
        ``debug``; a finer threshold such as ``trace`` is left alone.

        Args:
            namespaces: Patterns, or None/empty to clear the filter.
        """
        patterns = list(namespaces) if namespaces is not None else []
        with self._lock:
            self._debug_filter = FilterSet.from_patterns(patterns)
            if patterns:
                self._level = _at_least_debug(self._level)
        logger.debug("Debug filter set", extra={"patterns": patterns})

    def get_debug_filter(self) -> list[str] | None:
        """Return configured patterns, excludes re-marked with ``-``."""
        return self._debug_filter.to_patterns()

    @property
    def debug_filter(self) -> FilterSet:
        """Filter applied to log and span namespaces."""
        return self._debug_filter

    def should_emit_span(self, namespace: str) -> bool:
        """Apply span switch, trace filter and debug filter to ``namespace``."""
        return (
            self._spans_enabled
            and self._trace_filter.allowed(namespace)
            and self._debug_filter.allowed(namespace)
        )

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def set_json_format(self, value: bool) -> None:
        """Switch the sink between JSON and console formatting."""
        self.sink.set_json_format(value)

    @property
    def json_format(self) -> bool:
        """True when output is JSON lines."""
        return self.sink.json_format

    # -------------------------------------------------------------------------
    # Span collection
    # -------------------------------------------------------------------------

    def start_collecting(self) -> None:
        """Clear previously collected spans and start collecting."""
        with self._lock:
            self._collected.clear()
            self._collecting = True

    def stop_collecting(self) -> list[SpanData]:
        """Stop collecting and return what was collected."""
        with self._lock:
            self._collecting = False
            return list(self._collected)

    def get_collected_spans(self) -> list[SpanData]:
        """Return a copy of the spans collected so far."""
        with self._lock:
            return list(self._collected)

    def clear_collected_spans(self) -> None:
        """Discard collected spans without changing the collecting state."""
        with self._lock:
            self._collected.clear()

    def collect(self, span_data: SpanData) -> None:
        """Record an ended span if collection is on."""
        if not self._collecting:
            return
        with self._lock:
            self._collected.append(span_data)

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Restore defaults (for tests). The sink is kept."""
        with self._lock:
            self._level = DEFAULT_LEVEL
            self._spans_enabled = False
            self._trace_filter = FilterSet()
            self._debug_filter = FilterSet()
            self._collecting = False
            self._collected.clear()
        self.ids.reset()
        self.sink.set_json_format(False)
        self.sink.set_suppress_console(False)
        self.sink.set_output_mode("console")


def _at_least_debug(level: LogLevel) -> LogLevel:
    """Lower ``level`` to ``debug`` unless it is already ``debug`` or finer."""
    if LEVEL_PRIORITY[level] > LEVEL_PRIORITY["debug"]:
        return "debug"
    return level


# =============================================================================
# Default Registry
# =============================================================================

_registry: Registry | None = None
_registry_lock = threading.Lock()


def get_registry() -> Registry:
    """Return the default registry, creating it from the environment."""
    global _registry

    # Double-checked locking for thread-safe lazy initialization
    if _registry is None:
        with _registry_lock:
            if _registry is None:  # pragma: no branch
                _registry = Registry.from_env(sink=Sink(name=OUTPUT_LOGGER_NAME))
    return _registry


def set_registry(registry: Registry | None) -> Registry | None:
    """Install ``registry`` as the default; returns the previous one.

    Passing None drops the default so the next use rebuilds it from the
    environment. The rebuilt registry's sink takes over the
    ``spanlog.output`` logger and releases the handlers left on it.

    Args:
        registry: Registry to install, or None.

    Returns:
        The registry that was the default before the call, or None.

    Example:
        >>> previous = set_registry(Registry(level="debug"))
        >>> set_registry(previous)
    """
    global _registry

    with _registry_lock:
        previous = _registry
        _registry = registry
    return previous


def set_log_level(level: LogLevel) -> None:
    """Set minimum log level.

    Args:
        level: One of trace, debug, info, warn, error, silent.

    Raises:
        ValueError: If ``level`` is not a known level name. Environment
            configuration (``LOG_LEVEL``) never raises.
    """
    get_registry().set_log_level(level)


def get_log_level() -> LogLevel:
    """Get current log level."""
    return get_registry().get_log_level()


def enable_spans() -> None:
    """Enable span output."""
    get_registry().enable_spans()


def disable_spans() -> None:
    """Disable span output."""
    get_registry().disable_spans()


def spans_are_enabled() -> bool:
    """Check if spans are enabled."""
    return get_registry().spans_enabled


def set_trace_filter(namespaces: Iterable[str] | None) -> None:
    """Restrict span output to ``namespaces``; see ``Registry.set_trace_filter``."""
    get_registry().set_trace_filter(namespaces)


def get_trace_filter() -> list[str] | None:
    """Return the span namespace patterns, or None when unrestricted."""
    return get_registry().get_trace_filter()


def set_debug_filter(namespaces: Iterable[str] | None) -> None:
    """Restrict log and span output to ``namespaces``.

    See ``Registry.set_debug_filter`` for the pattern syntax and the
    threshold adjustment.
    """
    get_registry().set_debug_filter(namespaces)


def get_debug_filter() -> list[str] | None:
    """Return the debug namespace patterns, or None when unrestricted."""
    return get_registry().get_debug_filter()


def set_json_format(value: bool) -> None:
    """Switch output between JSON lines and console lines."""
    get_registry().set_json_format(value)


def set_output_mode(mode: OutputMode) -> None:
    """Send log records to the console and writers, or to writers only.

    Span records still reach the console in ``"writers-only"`` mode; use
    ``set_suppress_console`` to silence them as well.

    Raises:
        ValueError: If ``mode`` is not ``"console"`` or ``"writers-only"``.
    """
    get_registry().sink.set_output_mode(mode)


def get_output_mode() -> OutputMode:
    """Return the current output mode."""
    return get_registry().sink.output_mode


def set_suppress_console(value: bool) -> None:
    """Suppress console output for logs and spans; writers still receive output."""
    get_registry().sink.set_suppress_console(value)


def add_writer(writer: LogWriter) -> Callable[[], None]:
    """Add a writer receiving all formatted output.

    Args:
        writer: Callback invoked as ``writer(formatted, label)``, where
            label is the level name or ``"span"``.

    Returns:
        Function that removes the writer.

    Example:
        >>> lines = []
        >>> unsubscribe = add_writer(lambda text, label: lines.append(text))
        >>> unsubscribe()
    """
    return get_registry().sink.add_writer(writer)


def configure_output(
    stream: IO[str] | None = None, json_format: bool | None = None
) -> None:
    """Point console output at ``stream`` and optionally change format.

    Args:
        stream: Console stream; None selects the current ``sys.stderr``.
        json_format: New format flag, or None to keep the current one.
    """
    get_registry().sink.configure(stream=stream, json_format=json_format)


def reset_ids() -> None:
    """Reset span/trace id counters (for tests)."""
    get_registry().ids.reset()


def start_collecting() -> None:
    """Enable span collection for analysis."""
    get_registry().start_collecting()


def stop_collecting() -> list[SpanData]:
    """Stop collecting and return collected spans."""
    return get_registry().stop_collecting()


def get_collected_spans() -> list[SpanData]:
    """Return spans collected so far without stopping collection."""
    return get_registry().get_collected_spans()


def clear_collected_spans() -> None:
    """Discard collected spans; collection stays on if it was on."""
    get_registry().clear_collected_spans()
