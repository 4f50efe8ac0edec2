"""Namespace filtering.

Decides, per namespace, whether a log or span record may be written.
Two independent filter sets exist per registry: the *trace* filter
(spans only) and the *debug* filter (logs and spans).

Matching rules:
- ``"*"`` matches every namespace.
- A pattern ``p`` matches namespace ``p`` itself and every descendant
  ``p:...``. It does not match siblings that merely share a prefix
  (``"ab"`` is not matched by ``"a"``).
- Patterns prefixed with ``-`` are excludes. An exclude always wins over
  an include that matches the same namespace.

Example:
    >>> f = FilterSet.from_patterns(["myapp", "-myapp:noisy"])
    >>> f.allowed("myapp:db")
    True
    >>> f.allowed("myapp:noisy:detail")
    False
    >>> f.allowed("other")
    False
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

WILDCARD = "*"

#: Include patterns that mean "everything" when read from the environment.
WILDCARD_ALIASES = frozenset({WILDCARD, "1", "true"})

EXCLUDE_MARKER = "-"


def matches_set(namespace: str, patterns: Iterable[str]) -> bool:
    """Check ``namespace`` against a collection of prefix patterns.

    Args:
        namespace: Colon-delimited logger name, e.g. ``"myapp:db:query"``.
        patterns: Patterns to test. ``"*"`` anywhere in the collection
            matches unconditionally.

    Returns:
        True if any pattern equals ``namespace`` or is a colon-delimited
        ancestor of it.

    Example:
        >>> matches_set("a:b", {"a"})
        True
        >>> matches_set("ab", {"a"})
        False
    """
    patterns = patterns if isinstance(patterns, set | frozenset) else set(patterns)
    if WILDCARD in patterns:
        return True
    for pattern in patterns:
        if namespace == pattern or namespace.startswith(pattern + ":"):
            return True
    return False


@dataclass(frozen=True)
class FilterSet:
    """Include/exclude namespace patterns.

    ``None`` on both sides means no restriction is configured. Instances
    are immutable; reconfiguring a registry replaces its filter set.

    Attributes:
        includes: Patterns a namespace must match, or None for "any".
        excludes: Patterns that veto a namespace, or None.
    """

    includes: frozenset[str] | None = None
    excludes: frozenset[str] | None = None

    @classmethod
    def from_patterns(
        cls,
        patterns: Iterable[str] | None,
        *,
        collapse_wildcards: bool = False,
    ) -> FilterSet:
        """Build a filter set from a flat pattern list.

        Patterns starting with ``-`` become excludes (marker stripped),
        everything else is an include. Patterns are taken literally: no
        validation, no trimming.

        Args:
            patterns: Flat list such as ``["myapp", "-myapp:noisy"]``.
                None or an empty list yields an unrestricted set.
            collapse_wildcards: When True, any include of ``"*"``, ``"1"``
                or ``"true"`` replaces the includes with ``{"*"}``. Used
                for environment parsing (``DEBUG=1``).

        Returns:
            New FilterSet. Sides with no patterns are None.
        """
        if not patterns:
            return cls()

        includes: list[str] = []
        excludes: list[str] = []
        for pattern in patterns:
            if pattern.startswith(EXCLUDE_MARKER):
                excludes.append(pattern[len(EXCLUDE_MARKER) :])
            else:
                includes.append(pattern)

        if collapse_wildcards and any(p in WILDCARD_ALIASES for p in includes):
            includes = [WILDCARD]

        return cls(
            includes=frozenset(includes) if includes else None,
            excludes=frozenset(excludes) if excludes else None,
        )

    @property
    def is_unrestricted(self) -> bool:
        """True when neither includes nor excludes are configured."""
        return not self.includes and not self.excludes

    def allowed(self, namespace: str) -> bool:
        """Decide whether ``namespace`` passes this filter.

        Precedence:
        1. Nothing configured: allow.
        2. An exclude matches: deny, even if an include also matches.
        3. Includes configured: allow only if one matches.
        4. Only excludes configured and none matched: allow.

        Args:
            namespace: Logger name being written.

        Returns:
            True if output for ``namespace`` may be produced.
        """
        if self.is_unrestricted:
            return True
        if self.excludes and matches_set(namespace, self.excludes):
            return False
        if self.includes:
            return matches_set(namespace, self.includes)
        return True

    def to_patterns(self) -> list[str] | None:
        """Return the flat pattern list, excludes re-marked with ``-``.

        Returns:
            Patterns that rebuild an equivalent set via ``from_patterns``,
            or None if unrestricted. Order is not significant.
        """
        if self.is_unrestricted:
            return None
        result: list[str] = sorted(self.includes or ())
        result.extend(EXCLUDE_MARKER + p for p in sorted(self.excludes or ()))
        return result


def allowed(namespace: str, filter_set: FilterSet | None) -> bool:
    """Module-level form of ``FilterSet.allowed``; None allows everything."""
    if filter_set is None:
        return True
    return filter_set.allowed(namespace)


def parse_pattern_list(value: str | None) -> list[str]:
    """Split comma-separated configuration text into trimmed patterns.

    Example:
        >>> parse_pattern_list("myapp, -myapp:noisy")
        ['myapp', '-myapp:noisy']
    """
    if not value:
        return []
    return [part.strip() for part in value.split(",")]
