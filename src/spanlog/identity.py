"""Logger identity: a namespace plus immutable props.

Identities are only ever built by composition. A child extends its
parent's namespace with one segment and layers its own props over the
parent's; neither side is modified.

Example:
    >>> root = Identity("myapp", {"version": "1.0"})
    >>> child = derive(root, "db", {"pool": 4})
    >>> child.name
    'myapp:db'
    >>> dict(child.props)
    {'version': '1.0', 'pool': 4}
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

SEPARATOR = ":"


@dataclass(frozen=True)
class Identity:
    """Namespace and props of a logger.

    Attributes:
        name: Colon-delimited namespace, e.g. ``"myapp:import"``.
        props: Read-only props inherited by every descendant.
    """

    name: str
    props: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze ``props`` as a read-only copy."""
        # Private copy so later changes to the caller's dict cannot leak in
        object.__setattr__(self, "props", MappingProxyType(dict(self.props)))

    def derive(
        self,
        segment: str | None = None,
        extra_props: Mapping[str, Any] | None = None,
    ) -> Identity:
        """Return a child identity. See ``derive``."""
        return derive(self, segment, extra_props)


def join_namespace(name: str, segment: str | None) -> str:
    """Append ``segment`` to ``name``; a falsy segment leaves it unchanged."""
    return f"{name}{SEPARATOR}{segment}" if segment else name


def derive(
    parent: Identity,
    segment: str | None = None,
    extra_props: Mapping[str, Any] | None = None,
) -> Identity:
    """Compose a child identity from ``parent``.

    Args:
        parent: Identity being extended. Never modified.
        segment: Namespace segment to append. Omitted or empty keeps the
            parent's name, which attaches props without deepening the
            namespace.
        extra_props: Props layered over the parent's. The child wins on
            key collisions.

    Returns:
        New Identity.
    """
    merged = {**parent.props, **(extra_props or {})}
    return Identity(join_namespace(parent.name, segment), merged)
