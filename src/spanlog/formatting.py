"""Record type and formatters for spanlog output.

Builds on Python's standard logging module:
- ``SpanlogRecord`` is a LogRecord carrying structured data and the
  spanlog level label (``"trace"`` .. ``"error"``, or ``"span"``).
- ``JSONFormatter`` renders one JSON object per line with the fixed
  field names ``time``, ``level``, ``name``, ``msg`` followed by the
  flattened structured data.
- ``ConsoleFormatter`` renders a compact human-readable line.

Example:
    >>> record = make_record("myapp:db", "info", "connected", {"pool": 4})
    >>> JSONFormatter().format(record)
    '{"time": "...Z", "level": "info", "name": "myapp:db", "msg": "connected", "pool": 4}'
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any

from spanlog.levels import to_stdlib_level

CIRCULAR = "[Circular]"


# =============================================================================
# Structured Log Record
# =============================================================================


class SpanlogRecord(logging.LogRecord):
    """LogRecord with structured data and a spanlog level label.

    ``name`` holds the colon-delimited spanlog namespace rather than a
    dotted stdlib logger name.
    """

    structured_data: dict[str, Any]
    label: str

    def __init__(
        self,
        name: str,
        level: int,
        pathname: str,
        lineno: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None,
        exc_info: Any,
        func: str | None = None,
        sinfo: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize a record with optional structured data and label.

        Args:
            name: spanlog namespace, e.g. ``"myapp:import"``.
            level: Numeric stdlib level.
            pathname: Source path (spanlog passes an empty string).
            lineno: Source line (spanlog passes 0).
            msg: Message text.
            args: % formatting args, normally empty.
            exc_info: Exception info or None.
            func: Function name, or None.
            sinfo: Stack info, or None.
            **kwargs: ``structured_data`` (dict) and ``label`` (str) are
                picked up if present.
        """
        super().__init__(
            name, level, pathname, lineno, msg, args, exc_info, func, sinfo
        )
        self.structured_data = kwargs.get("structured_data", {})
        self.label = kwargs.get("label", logging.getLevelName(level).lower())


def make_record(
    namespace: str,
    label: str,
    message: str,
    data: Mapping[str, Any] | None = None,
) -> SpanlogRecord:
    """Build a SpanlogRecord for ``namespace`` at ``label``."""
    return SpanlogRecord(
        name=namespace,
        level=to_stdlib_level(label),
        pathname="",
        lineno=0,
        msg=message,
        args=(),
        exc_info=None,
        structured_data=dict(data or {}),
        label=label,
    )


# =============================================================================
# Value Helpers
# =============================================================================


def to_jsonable(value: Any, _ancestors: tuple[int, ...] = ()) -> Any:
    """Convert ``value`` into something ``json.dumps`` accepts.

    Containers are copied recursively. A container that contains itself
    (directly or further down) is replaced by ``"[Circular]"`` at the
    point of recursion; objects JSON cannot represent fall back to
    ``str()``.

    Args:
        value: Arbitrary Python value.

    Returns:
        JSON-safe equivalent of ``value``.

    Example:
        >>> data = {"a": 1}
        >>> data["self"] = data
        >>> to_jsonable(data)
        {'a': 1, 'self': '[Circular]'}
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Mapping | list | tuple | set | frozenset):
        if id(value) in _ancestors:
            return CIRCULAR
        ancestors = (*_ancestors, id(value))
        if isinstance(value, Mapping):
            return {str(k): to_jsonable(v, ancestors) for k, v in value.items()}
        return [to_jsonable(v, ancestors) for v in value]
    return str(value)


def _format_value(value: Any) -> str:
    """Format a value for the key=value console output.

    - None: ``null``
    - Strings: as-is, quoted if they contain spaces
    - Dicts/lists: JSON
    - Everything else: ``str()``

    Example:
        >>> _format_value("has spaces")
        '"has spaces"'
        >>> _format_value({"a": 1})
        '{"a": 1}'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        if " " in value:
            return f'"{value}"'
        return value
    if isinstance(value, dict | list | tuple):
        return json.dumps(to_jsonable(value))
    return str(value)


def _record_time(record: logging.LogRecord) -> datetime:
    """Creation time of ``record`` as an aware UTC datetime."""
    return datetime.fromtimestamp(record.created, tz=UTC)


# =============================================================================
# Formatters
# =============================================================================


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter.

    Format: ``HH:MM:SS LABEL namespace message | key=value key=value``
    """

    def __init__(self, include_structured: bool = True) -> None:
        """Create a console formatter.

        Args:
            include_structured: Append ``| key=value`` pairs for structured data.
        """
        super().__init__()
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as a single console line.

        Args:
            record: Record to format. ``label`` and ``structured_data``
                attributes are used when present, so plain LogRecords
                format too.

        Returns:
            Formatted line without trailing newline.
        """
        clock = _record_time(record).strftime("%H:%M:%S")
        label = getattr(record, "label", record.levelname.lower()).upper()
        base = f"{clock} {label} {record.name} {record.getMessage()}"

        structured = getattr(record, "structured_data", {})
        if not self.include_structured or not structured:
            return base

        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """JSON formatter for log aggregation.

    Each record becomes one JSON line:

    - ``time``: ISO 8601 UTC with milliseconds and ``Z`` suffix
    - ``level``: spanlog label (``"span"`` for span records)
    - ``name``: namespace
    - ``msg``: message
    - all structured data flattened at top level
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as a single-line JSON object.

        Structured data cannot overwrite the four fixed fields. Circular
        references and non-serializable values are degraded, never
        raised (see ``to_jsonable``).

        Args:
            record: Record to format.

        Returns:
            JSON string with no trailing newline.
        """
        timestamp = _record_time(record).isoformat(timespec="milliseconds")
        log_dict: dict[str, Any] = {
            "time": timestamp.replace("+00:00", "Z"),
            "level": getattr(record, "label", record.levelname.lower()),
            "name": record.name,
            "msg": record.getMessage(),
        }

        structured = to_jsonable(getattr(record, "structured_data", {}))
        for key, value in structured.items():
            log_dict.setdefault(key, value)

        if record.exc_info:
            log_dict.setdefault("exception", self.formatException(record.exc_info))

        return json.dumps(log_dict, default=str)


def get_formatter(json_format: bool) -> logging.Formatter:
    """Return a new JSON or console formatter."""
    return JSONFormatter() if json_format else ConsoleFormatter()
