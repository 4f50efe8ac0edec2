"""spanlog: structured logging where a span is a logger plus a duration.

Provides namespaced structured loggers, timed spans with trace/parent
linkage, debug-style namespace filtering, and a relay that lets worker
threads log through one consuming thread (see ``spanlog.worker``).

Example:
    from spanlog import create_logger

    log = create_logger("myapp")

    # Simple logging
    log.info("starting")

    # Structured data via keyword arguments
    log.info("connected", host="db1", pool=4)

    # With timing (span)
    with log.span("import", file="data.csv") as task:
        task.info("importing")
        task.span_data["count"] = 42
    # -> SPAN myapp:import (15ms)

Configuration Example:
    from spanlog import enable_spans, set_debug_filter, set_log_level

    set_log_level("warn")
    set_debug_filter(["myapp", "-myapp:noisy"])
    enable_spans()

    # Or from the environment: LOG_LEVEL, DEBUG, TRACE, TRACE_FORMAT
"""

from spanlog.config import (
    Registry,
    add_writer,
    clear_collected_spans,
    configure_output,
    disable_spans,
    enable_spans,
    get_collected_spans,
    get_debug_filter,
    get_log_level,
    get_output_mode,
    get_registry,
    get_trace_filter,
    reset_ids,
    set_debug_filter,
    set_json_format,
    set_log_level,
    set_output_mode,
    set_registry,
    set_suppress_console,
    set_trace_filter,
    spans_are_enabled,
    start_collecting,
    stop_collecting,
)
from spanlog.filters import FilterSet, allowed, matches_set
from spanlog.formatting import ConsoleFormatter, JSONFormatter, SpanlogRecord
from spanlog.identity import Identity, derive
from spanlog.levels import LogLevel, OutputLogLevel, should_emit
from spanlog.logger import BaseLogger, Logger, SpanLogger, create_logger
from spanlog.sink import Sink
from spanlog.spans import RESERVED_SPAN_KEYS, IdGenerator, SpanData, SpanMeta
from spanlog.stats import SpanStatsSummary, summarize_spans

__all__ = [
    # Loggers
    "BaseLogger",
    "Logger",
    "SpanLogger",
    "create_logger",
    # Identity
    "Identity",
    "derive",
    # Spans
    "IdGenerator",
    "RESERVED_SPAN_KEYS",
    "SpanData",
    "SpanMeta",
    # Levels and filters
    "FilterSet",
    "LogLevel",
    "OutputLogLevel",
    "allowed",
    "matches_set",
    "should_emit",
    # Configuration
    "Registry",
    "add_writer",
    "configure_output",
    "disable_spans",
    "enable_spans",
    "get_debug_filter",
    "get_log_level",
    "get_output_mode",
    "get_registry",
    "get_trace_filter",
    "reset_ids",
    "set_debug_filter",
    "set_json_format",
    "set_log_level",
    "set_output_mode",
    "set_registry",
    "set_suppress_console",
    "set_trace_filter",
    "spans_are_enabled",
    # Output
    "ConsoleFormatter",
    "JSONFormatter",
    "Sink",
    "SpanlogRecord",
    # Collection and statistics
    "SpanStatsSummary",
    "clear_collected_spans",
    "get_collected_spans",
    "start_collecting",
    "stop_collecting",
    "summarize_spans",
]
