"""Log levels and the level threshold comparison.

Levels are plain lowercase strings ordered from most to least verbose:

    trace < debug < info < warn < error < silent

``silent`` is only meaningful as a threshold; nothing is ever written at
that level. Each level also maps onto a stdlib ``logging`` number so that
records handed to the output sink carry a sensible ``levelno``.
"""

from __future__ import annotations

import logging
from typing import Literal, cast

# =============================================================================
# Constants
# =============================================================================

#: Levels that produce output.
OutputLogLevel = Literal["trace", "debug", "info", "warn", "error"]

#: All levels, including ``silent`` for thresholds.
LogLevel = Literal["trace", "debug", "info", "warn", "error", "silent"]

LEVEL_PRIORITY: dict[str, int] = {
    "trace": 0,
    "debug": 1,
    "info": 2,
    "warn": 3,
    "error": 4,
    "silent": 5,
}

OUTPUT_LEVELS: tuple[OutputLogLevel, ...] = ("trace", "debug", "info", "warn", "error")

DEFAULT_LEVEL: LogLevel = "info"

#: Numeric stdlib level for ``trace`` (below DEBUG).
TRACE = 5

#: Numeric stdlib level for span records (between INFO and WARNING).
SPAN = 25

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(SPAN, "SPAN")

_STDLIB_LEVELS: dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "span": SPAN,
}


# =============================================================================
# Helpers
# =============================================================================


def should_emit(level: str, threshold: str) -> bool:
    """Check whether a record at ``level`` passes ``threshold``.

    Args:
        level: Level of the record being written.
        threshold: Currently configured minimum level.

    Returns:
        True when ``level`` is at least as severe as ``threshold``.

    Example:
        >>> should_emit("warn", "info")
        True
        >>> should_emit("debug", "info")
        False
        >>> should_emit("error", "silent")
        False
    """
    return LEVEL_PRIORITY[level] >= LEVEL_PRIORITY[threshold]


def is_level(value: object) -> bool:
    """Return True if ``value`` names a known level."""
    return isinstance(value, str) and value in LEVEL_PRIORITY


def parse_level(value: str | None, default: LogLevel = DEFAULT_LEVEL) -> LogLevel:
    """Parse a level name from configuration text.

    Surrounding whitespace and case are ignored, and anything
    unrecognised falls back to ``default`` instead of raising.

    Args:
        value: Raw text, e.g. the ``LOG_LEVEL`` environment variable.
        default: Level used for missing or unknown values.

    Returns:
        The parsed level name.

    Example:
        >>> parse_level(" WARN ")
        'warn'
        >>> parse_level("verbose")
        'info'
    """
    if not value:
        return default
    candidate = value.strip().lower()
    if candidate in LEVEL_PRIORITY:
        return cast(LogLevel, candidate)
    return default


def validate_level(value: str) -> LogLevel:
    """Return ``value`` as a level, raising ValueError if it is unknown.

    Used by the programmatic setters where an unknown name is a bug in
    the caller rather than a configuration typo.
    """
    if value not in LEVEL_PRIORITY:
        valid = ", ".join(LEVEL_PRIORITY)
        raise ValueError(f"Unknown log level {value!r} (expected one of: {valid})")
    return cast(LogLevel, value)


def to_stdlib_level(label: str) -> int:
    """Map a level label (or ``"span"``) to a stdlib ``logging`` number."""
    return _STDLIB_LEVELS.get(label, logging.INFO)
