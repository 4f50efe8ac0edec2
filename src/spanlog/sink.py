"""Output sink: where formatted spanlog records go.

The sink wraps a dedicated, non-propagating stdlib logger. Records that
passed every spanlog filter are handed to its handlers:

- one stream handler (stderr by default) for console output;
- any number of writer handlers that forward each formatted line to a
  user callback, e.g. to mirror output into a TUI panel or a file.

Two switches control the console stream handler. Writers are never
affected by either:

- ``set_output_mode("writers-only")`` keeps log records off the console
  while span records still reach it;
- ``set_suppress_console(True)`` silences the console for log and span
  records alike.

Filtering never happens here: the stdlib logger is opened to every level
so spanlog's own filter engine stays the single authority.

Example:
    >>> lines = []
    >>> unsubscribe = sink.add_writer(lambda text, label: lines.append(text))
    >>> sink.set_output_mode("writers-only")   # spans still on the console
    >>> sink.set_suppress_console(True)        # nothing on the console
    >>> unsubscribe()
"""

from __future__ import annotations

import itertools
import logging
import sys
import threading
from collections.abc import Callable
from typing import IO, Any, Literal

from spanlog.formatting import SpanlogRecord, get_formatter

#: Writer callback: receives the formatted line and the level label.
LogWriter = Callable[[str, str], None]

#: Where log records go. Span records always reach the console unless
#: it is suppressed.
OutputMode = Literal["console", "writers-only"]

OUTPUT_MODES: tuple[OutputMode, ...] = ("console", "writers-only")

OUTPUT_LOGGER_NAME = "spanlog.output"

_sink_ids = itertools.count(1)


class WriterHandler(logging.Handler):
    """Handler that forwards formatted records to a writer callback.

    Exceptions raised by the writer go to ``handleError`` rather than
    propagating, so a broken writer never breaks the caller.

    Args:
        writer: Callback invoked as ``writer(formatted, label)``.
        level: Minimum stdlib level (spanlog filters before this point,
            so the default NOTSET is normally right).
    """

    def __init__(self, writer: LogWriter, level: int = logging.NOTSET) -> None:
        """Create a handler bound to ``writer``."""
        super().__init__(level)
        self.writer = writer

    def emit(self, record: logging.LogRecord) -> None:
        """Format ``record`` and pass it to the writer with its label."""
        try:
            formatted = self.format(record)
            self.writer(formatted, getattr(record, "label", record.levelname.lower()))
        except Exception:
            self.handleError(record)


class _ConsoleFilter(logging.Filter):
    """Console handler filter applying suppression and the output mode."""

    def __init__(self) -> None:
        """Start with the console enabled in ``"console"`` mode."""
        super().__init__()
        self.suppressed = False
        self.mode: OutputMode = "console"

    def filter(self, record: logging.LogRecord) -> bool:
        """Return False for records the console must not show."""
        if self.suppressed:
            return False
        if self.mode == "writers-only":
            return getattr(record, "label", None) == "span"
        return True


class Sink:
    """Formatted output for one registry.

    A sink owns its stdlib logger. Creating a sink under a name that
    already has handlers (for example when the default registry is
    rebuilt) removes and closes those handlers first, so output is
    never duplicated.

    Args:
        name: Name of the backing stdlib logger. Default: a unique
            child of ``spanlog.output``, so separate sinks never share
            handlers.
        stream: Console stream. Default: ``sys.stderr`` at configure time.
        json_format: Use JSONFormatter instead of ConsoleFormatter.

    Example:
        >>> sink = Sink(stream=io.StringIO(), json_format=True)
        >>> sink.handle(make_record("myapp", "info", "hello"))
        >>> sink.close()
    """

    def __init__(
        self,
        name: str | None = None,
        stream: IO[str] | None = None,
        json_format: bool = False,
    ) -> None:
        """Create the sink and install its console stream handler.

        Args:
            name: Backing stdlib logger name, or None for a unique one.
            stream: Console stream, or None for ``sys.stderr``.
            json_format: Use JSON lines instead of console lines.
        """
        if name is None:
            name = f"{OUTPUT_LOGGER_NAME}.{next(_sink_ids)}"
        self._logger = logging.getLogger(name)
        self._logger.setLevel(1)
        # Prevent propagation to root logger (avoid duplicate logs)
        self._logger.propagate = False
        self._json_format = json_format
        self._console_filter = _ConsoleFilter()
        self._stream_handler: logging.StreamHandler[Any] | None = None
        self._lock = threading.Lock()
        self._release_handlers()
        self.configure(stream=stream)

    @property
    def name(self) -> str:
        """Name of the backing stdlib logger."""
        return self._logger.name

    @property
    def json_format(self) -> bool:
        """True when handlers use JSONFormatter."""
        return self._json_format

    @property
    def handlers(self) -> list[logging.Handler]:
        """Snapshot of the handlers currently attached."""
        return list(self._logger.handlers)

    def configure(self, stream: IO[str] | None = None, json_format: bool | None = None) -> None:
        """(Re)install the console stream handler.

        Args:
            stream: Stream for console output. None selects ``sys.stderr``
                as it is at the time of the call.
            json_format: New format flag, or None to keep the current one.
        """
        with self._lock:
            if json_format is not None:
                self._json_format = json_format
            if self._stream_handler is not None:
                self._logger.removeHandler(self._stream_handler)
            handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
            handler.addFilter(self._console_filter)
            self._stream_handler = handler
            self._logger.addHandler(handler)
            self._apply_formatter()

    def set_json_format(self, json_format: bool) -> None:
        """Switch every handler between JSON and console formatting."""
        with self._lock:
            self._json_format = json_format
            self._apply_formatter()

    def _apply_formatter(self) -> None:
        """Give every attached handler a fresh formatter for the current format."""
        # Caller holds the lock
        for handler in self._logger.handlers:
            handler.setFormatter(get_formatter(self._json_format))

    def set_output_mode(self, mode: OutputMode) -> None:
        """Choose where log records go.

        Args:
            mode: ``"console"`` writes log records to the console stream
                and to writers. ``"writers-only"`` sends log records to
                writers only; span records still reach the console.

        Raises:
            ValueError: If ``mode`` is not a known output mode.
        """
        if mode not in OUTPUT_MODES:
            valid = ", ".join(OUTPUT_MODES)
            raise ValueError(f"Unknown output mode {mode!r} (expected one of: {valid})")
        self._console_filter.mode = mode

    @property
    def output_mode(self) -> OutputMode:
        """Current output mode (``"console"`` by default)."""
        return self._console_filter.mode

    def set_suppress_console(self, value: bool) -> None:
        """Silence the console for logs and spans; writers keep receiving output."""
        self._console_filter.suppressed = value

    @property
    def console_suppressed(self) -> bool:
        """True while console output is suppressed."""
        return self._console_filter.suppressed

    def add_writer(self, writer: LogWriter) -> Callable[[], None]:
        """Register a writer for every formatted record.

        Args:
            writer: Callback invoked as ``writer(formatted, label)``.

        Returns:
            Function that removes the writer again. Calling it twice is
            harmless.
        """
        handler = WriterHandler(writer)
        handler.setFormatter(get_formatter(self._json_format))
        with self._lock:
            self._logger.addHandler(handler)

        def unsubscribe() -> None:
            """Detach the writer's handler; a second call does nothing."""
            with self._lock:
                self._logger.removeHandler(handler)

        return unsubscribe

    def handle(self, record: SpanlogRecord) -> None:
        """Hand a record that passed filtering to all handlers."""
        self._logger.handle(record)

    def close(self) -> None:
        """Remove and close every handler."""
        with self._lock:
            self._release_handlers()
            self._stream_handler = None

    def _release_handlers(self) -> None:
        """Detach and close every handler on the backing logger."""
        for handler in self._logger.handlers[:]:
            self._logger.removeHandler(handler)
            handler.close()
