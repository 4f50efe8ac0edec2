"""Emission pipeline: the only place where output is produced.

Both functions first ask the registry's filters whether the record may
be written, and only then build a record and hand it to the sink.
Creating loggers and spans never filters; the decision is made at write
time so configuration changes apply to existing loggers immediately.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from spanlog.config import Registry
from spanlog.formatting import make_record
from spanlog.identity import Identity

#: A log message, or a zero-argument callable producing one lazily.
Message = str | Callable[[], str]


def emit_log(
    registry: Registry,
    identity: Identity,
    level: str,
    message: Message,
    data: Mapping[str, Any] | None = None,
) -> bool:
    """Write a log record if level and debug filter allow it.

    Args:
        registry: Configuration to filter against and sink to write to.
        identity: Namespace and props of the logger. Props are included
            in the record under ``data`` (data wins on collisions).
        level: Record level (``trace`` .. ``error``).
        message: Text, or a callable evaluated only if the record passes.
        data: Per-call structured data.

    Returns:
        True if the record was handed to the sink.
    """
    if not registry.should_log(level):
        return False
    if not registry.debug_filter.allowed(identity.name):
        return False

    text = message() if callable(message) else message
    record = make_record(identity.name, level, text, {**identity.props, **(data or {})})
    registry.sink.handle(record)
    return True


def emit_span(
    registry: Registry,
    identity: Identity,
    duration: float,
    attrs: Mapping[str, Any],
) -> bool:
    """Write a span record if span output and both filters allow it.

    The level threshold does not apply to spans.

    Args:
        registry: Configuration and sink.
        identity: Namespace of the span.
        duration: Span duration in milliseconds.
        attrs: Flattened record data: ids, props and custom attributes.

    Returns:
        True if the record was handed to the sink.
    """
    if not registry.should_emit_span(identity.name):
        return False

    record = make_record(
        identity.name,
        "span",
        f"({_format_duration(duration)}ms)",
        {"duration": duration, **attrs},
    )
    registry.sink.handle(record)
    return True


def _format_duration(duration: float) -> str:
    """Render a duration without a trailing ``.0`` for whole milliseconds."""
    if float(duration).is_integer():
        return str(int(duration))
    return f"{duration:.1f}"
