"""Reduce arbitrary values to wire-safe data for relay messages.

``serialize_arg`` never raises. Values that cannot be represented are
replaced by descriptive placeholders:

- functions/methods/classes -> ``"[Function: name]"``
- exceptions -> ``{"name", "message", "stack"}``
- self-containing containers -> ``"[Circular]"`` at the point of recursion
- nesting deeper than ``MAX_DEPTH`` -> ``"[max depth]"``
- other objects -> ``repr()``

Example:
    >>> serialize_arg({"f": len, "n": 1})
    {'f': '[Function: len]', 'n': 1}
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping
from typing import Any

MAX_DEPTH = 5
MAX_DEPTH_PLACEHOLDER = "[max depth]"
CIRCULAR_PLACEHOLDER = "[Circular]"


def serialize_arg(arg: Any, depth: int = 0, _ancestors: tuple[int, ...] = ()) -> Any:
    """Convert ``arg`` into plain data that survives a by-value copy.

    Args:
        arg: Any value passed to a captured console call.
        depth: Current nesting depth (callers leave the default).

    Returns:
        None, bool, int, float, str, or lists/dicts thereof.
    """
    if depth > MAX_DEPTH:
        return MAX_DEPTH_PLACEHOLDER

    if arg is None or isinstance(arg, bool | int | float | str):
        return arg
    if isinstance(arg, bytes):
        return arg.decode("utf-8", errors="replace")
    if isinstance(arg, BaseException):
        return {
            "name": type(arg).__name__,
            "message": str(arg),
            "stack": "".join(traceback.format_exception(arg)).rstrip(),
        }
    if callable(arg):
        return f"[Function: {getattr(arg, '__name__', None) or 'anonymous'}]"

    if isinstance(arg, Mapping | list | tuple | set | frozenset):
        if id(arg) in _ancestors:
            return CIRCULAR_PLACEHOLDER
        ancestors = (*_ancestors, id(arg))
        if isinstance(arg, Mapping):
            return {
                str(key): serialize_arg(value, depth + 1, ancestors)
                for key, value in arg.items()
            }
        return [serialize_arg(value, depth + 1, ancestors) for value in arg]

    try:
        return repr(arg)
    except Exception:
        return f"[{type(arg).__name__}]"
