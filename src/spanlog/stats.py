"""Duration statistics over collected spans.

Span collection (``start_collecting`` / ``stop_collecting``) keeps the
SpanData of every ended span. This module summarizes such a list per
namespace: counts, min/max/avg/p95 duration and how many spans ended
with an ``error`` attribute (set automatically when a ``with`` block
exits by exception).

Example:
    start_collecting()
    run_import()
    summaries = summarize_spans(stop_collecting())

    for namespace, summary in summaries.items():
        print(f"{namespace}: {summary.count}x, p95 {summary.p95_duration_ms:.1f}ms")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from spanlog.spans import SpanData


@dataclass
class SpanStatsSummary:
    """Summary statistics for one namespace.

    Attributes:
        namespace: Span namespace
        count: Number of ended spans
        error_count: Spans carrying an ``error`` attribute
        min_duration_ms: Shortest duration
        max_duration_ms: Longest duration
        avg_duration_ms: Mean duration
        p95_duration_ms: 95th percentile duration
    """

    namespace: str
    count: int = 0
    error_count: int = 0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0

    @property
    def error_rate(self) -> float:
        """Fraction of spans that ended with an error (0.0 if none)."""
        return self.error_count / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert the summary to a JSON-serializable dict."""
        return {
            "namespace": self.namespace,
            "count": self.count,
            "error_count": self.error_count,
            "error_rate": self.error_rate,
            "min_duration_ms": self.min_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "avg_duration_ms": self.avg_duration_ms,
            "p95_duration_ms": self.p95_duration_ms,
        }


def summarize_spans(spans: Iterable[SpanData]) -> dict[str, SpanStatsSummary]:
    """Group spans by namespace and compute duration statistics.

    Args:
        spans: Collected SpanData, e.g. from ``stop_collecting()``.

    Returns:
        Mapping of namespace to SpanStatsSummary, in first-seen order.

    Example:
        >>> summaries = summarize_spans(stop_collecting())
        >>> summaries["myapp:import"].count
        3
    """
    durations: dict[str, list[float]] = {}
    errors: dict[str, int] = {}

    for span in spans:
        namespace = span.namespace
        durations.setdefault(namespace, []).append(span.duration)
        if span.get("error") is not None:
            errors[namespace] = errors.get(namespace, 0) + 1

    summaries: dict[str, SpanStatsSummary] = {}
    for namespace, values in durations.items():
        ordered = sorted(values)
        summaries[namespace] = SpanStatsSummary(
            namespace=namespace,
            count=len(ordered),
            error_count=errors.get(namespace, 0),
            min_duration_ms=ordered[0],
            max_duration_ms=ordered[-1],
            avg_duration_ms=sum(ordered) / len(ordered),
            p95_duration_ms=_percentile(ordered, 95),
        )
    return summaries


def _percentile(sorted_data: list[float], p: float) -> float:
    """Calculate a percentile value from pre-sorted data.

    Uses linear interpolation between data points, matching numpy's
    'linear' method.

    Args:
        sorted_data: Values sorted ascending. Empty list returns 0.0.
        p: Percentile, 0-100 inclusive.

    Returns:
        The percentile value.

    Raises:
        ValueError: If p is outside the range [0, 100].

    Example:
        >>> _percentile([1.0, 2.0, 3.0, 4.0, 5.0], 50)
        3.0
        >>> _percentile([100.0, 150.0, 200.0], 95)
        195.0
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be between 0 and 100, got {p}")

    if not sorted_data:
        return 0.0

    k = (len(sorted_data) - 1) * (p / 100)
    floor_idx = int(k)
    ceil_idx = min(floor_idx + 1, len(sorted_data) - 1)

    if floor_idx == ceil_idx:
        return sorted_data[floor_idx]

    fraction = k - floor_idx
    return sorted_data[floor_idx] * (1 - fraction) + sorted_data[ceil_idx] * fraction
