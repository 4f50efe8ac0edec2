"""Span lifecycle: ids, timing and custom attributes.

A span is Active from creation until its first ``finish()``, then Ended
for good. While Active its duration is live (time since start); once
Ended it is frozen. Custom attributes live in a plain dict next to six
structural fields that callers can read but never overwrite.

Timing:
    ``start_time``/``end_time`` are wall-clock epoch milliseconds for
    display and the wire. Durations are measured on a monotonic clock so
    they never go negative or backwards, and ``end_time`` is derived as
    ``start_time + duration`` to keep the two consistent.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

# =============================================================================
# Constants
# =============================================================================

#: Structural span fields; writes to these names are ignored.
RESERVED_SPAN_KEYS: frozenset[str] = frozenset(
    {"id", "trace_id", "parent_id", "start_time", "end_time", "duration"}
)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


# =============================================================================
# Id Generation
# =============================================================================


class IdGenerator:
    """Monotonic span and trace id counters.

    Ids are unique per generator, not globally: a relay producer uses its
    own generator (different prefixes) and never coordinates with the
    consumer's.

    Example:
        >>> ids = IdGenerator()
        >>> ids.next_span_id(), ids.next_span_id(), ids.next_trace_id()
        ('sp_1', 'sp_2', 'tr_1')
    """

    def __init__(self, span_prefix: str = "sp_", trace_prefix: str = "tr_") -> None:
        """Create counters producing ``<prefix><base36 counter>`` ids.

        Args:
            span_prefix: Prefix of span ids.
            trace_prefix: Prefix of trace ids.
        """
        self.span_prefix = span_prefix
        self.trace_prefix = trace_prefix
        self._span_counter = 0
        self._trace_counter = 0
        self._lock = threading.Lock()

    def next_span_id(self) -> str:
        """Return the next span id, e.g. ``"sp_1"``."""
        with self._lock:
            self._span_counter += 1
            value = self._span_counter
        return f"{self.span_prefix}{_to_base36(value)}"

    def next_trace_id(self) -> str:
        """Return the next trace id, e.g. ``"tr_1"``."""
        with self._lock:
            self._trace_counter += 1
            value = self._trace_counter
        return f"{self.trace_prefix}{_to_base36(value)}"

    def reset(self) -> None:
        """Restart both counters (for tests)."""
        with self._lock:
            self._span_counter = 0
            self._trace_counter = 0


# =============================================================================
# Span Metadata
# =============================================================================


@dataclass
class SpanMeta:
    """Mutable timing and attribute state of one span.

    Owned exclusively by the span logger that created it. ``parent_id``
    is a weak reference by id only; the parent is never looked up.

    Attributes:
        id: Span id, unique within its IdGenerator.
        trace_id: Shared by every span descending from the same root.
        parent_id: Id of the enclosing span, or None for a root span.
        start_time: Epoch milliseconds at creation.
        end_time: Epoch milliseconds at end, None while Active.
        attrs: Custom attributes set by the caller.
    """

    id: str
    trace_id: str
    parent_id: str | None
    start_time: float
    end_time: float | None = None
    attrs: dict[str, Any] = field(default_factory=dict)
    _started: float = field(default_factory=time.perf_counter, repr=False)
    _duration: float | None = field(default=None, repr=False)

    @classmethod
    def start(
        cls,
        ids: IdGenerator,
        parent_id: str | None = None,
        trace_id: str | None = None,
    ) -> SpanMeta:
        """Start a new Active span.

        Args:
            ids: Generator for the new span id (and trace id for roots).
            parent_id: Id of the enclosing span, if any.
            trace_id: Trace of the enclosing span. None starts a new trace.

        Returns:
            SpanMeta with ``start_time`` set to now and no attributes.
        """
        return cls(
            id=ids.next_span_id(),
            trace_id=trace_id or ids.next_trace_id(),
            parent_id=parent_id,
            start_time=now_ms(),
        )

    @property
    def is_ended(self) -> bool:
        """True once ``finish()`` has run."""
        return self.end_time is not None

    @property
    def duration(self) -> float:
        """Elapsed milliseconds: live while Active, frozen once Ended."""
        if self._duration is not None:
            return self._duration
        return _elapsed_ms(self._started)

    def finish(self, duration: float | None = None) -> bool:
        """Transition Active -> Ended.

        Args:
            duration: Milliseconds to record instead of the measured
                elapsed time. Used when replaying a span that was timed
                on another thread. Negative values are clamped to zero.

        Returns:
            True if this call ended the span, False if it was already
            Ended (in which case nothing changes).
        """
        if self.is_ended:
            return False
        elapsed = _elapsed_ms(self._started) if duration is None else max(0.0, duration)
        self._duration = elapsed
        self.end_time = self.start_time + elapsed
        return True

    def set_attribute(self, key: str, value: Any) -> bool:
        """Store a custom attribute; reserved keys are silently ignored.

        Returns:
            True if stored, False if ``key`` is a structural field.
        """
        if key in RESERVED_SPAN_KEYS:
            return False
        self.attrs[key] = value
        return True


def _elapsed_ms(started: float) -> float:
    """Milliseconds since ``started`` (a ``perf_counter`` value), rounded to µs."""
    return round(max(0.0, time.perf_counter() - started) * 1000, 3)


# =============================================================================
# Caller-facing View
# =============================================================================


class SpanData:
    """Caller-facing accessor over a span's SpanMeta.

    Structural fields are read-only properties. Custom attributes are read
    and written through ``get``/``set`` or item access; writes to a
    structural name are dropped without raising.

    Example:
        >>> with log.span("import") as task:
        ...     task.span_data["count"] = 42
        ...     task.span_data.set("id", "x")   # ignored, returns False
        False
    """

    __slots__ = ("_meta", "_namespace")

    def __init__(self, meta: SpanMeta, namespace: str = "") -> None:
        """Wrap ``meta`` for callers.

        Args:
            meta: The span's timing and attribute state.
            namespace: Namespace of the owning span logger.
        """
        self._meta = meta
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        """Namespace of the span logger that owns this span."""
        return self._namespace

    @property
    def id(self) -> str:
        """Span id."""
        return self._meta.id

    @property
    def trace_id(self) -> str:
        """Trace id shared with every span in the same trace."""
        return self._meta.trace_id

    @property
    def parent_id(self) -> str | None:
        """Id of the enclosing span, or None for a root span."""
        return self._meta.parent_id

    @property
    def start_time(self) -> float:
        """Epoch milliseconds at creation."""
        return self._meta.start_time

    @property
    def end_time(self) -> float | None:
        """Epoch milliseconds at end, or None while the span is active."""
        return self._meta.end_time

    @property
    def duration(self) -> float:
        """Elapsed milliseconds: live while active, frozen once ended."""
        return self._meta.duration

    @property
    def attrs(self) -> dict[str, Any]:
        """Copy of the custom attributes."""
        return dict(self._meta.attrs)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a structural field or custom attribute.

        Args:
            key: Field or attribute name.
            default: Returned when a custom attribute is missing.

        Returns:
            The value, or ``default``.
        """
        if key in RESERVED_SPAN_KEYS:
            return getattr(self, key)
        return self._meta.attrs.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """Store a custom attribute.

        Returns:
            True if stored, False if ``key`` is reserved (nothing changes).
        """
        return self._meta.set_attribute(key, value)

    def __getitem__(self, key: str) -> Any:
        """Read a structural field or custom attribute; KeyError if missing."""
        if key in RESERVED_SPAN_KEYS:
            return getattr(self, key)
        return self._meta.attrs[key]

    def __setitem__(self, key: str, value: Any) -> None:
        """Store a custom attribute; reserved keys are silently ignored."""
        self._meta.set_attribute(key, value)

    def __contains__(self, key: object) -> bool:
        """True for structural field names and set custom attributes."""
        return key in RESERVED_SPAN_KEYS or key in self._meta.attrs

    def __iter__(self) -> Iterator[str]:
        """Iterate over custom attribute names."""
        return iter(self._meta.attrs)

    def to_dict(self) -> dict[str, Any]:
        """Structural fields plus custom attributes as one plain dict."""
        return {
            "id": self.id,
            "trace_id": self.trace_id,
            "parent_id": self.parent_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            **self._meta.attrs,
        }

    def __repr__(self) -> str:
        """Show ids and whether the span is still active."""
        state = "ended" if self._meta.is_ended else "active"
        return f"SpanData(id={self.id!r}, trace_id={self.trace_id!r}, {state})"
