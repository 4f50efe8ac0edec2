"""Pytest configuration and fixtures for spanlog tests.

Every test runs against a fresh default registry whose console output
goes to an in-memory stream, so tests never depend on the process
environment (LOG_LEVEL, DEBUG, TRACE) or on each other's configuration.
"""

import io
import json

import pytest

from spanlog.config import Registry, set_registry
from spanlog.sink import Sink
from spanlog.worker import reset_worker_ids, restore_console


class CapturedOutput:
    """Writer that records every formatted line with its level label."""

    def __init__(self):
        """Start with no captured lines."""
        self.lines: list[tuple[str, str]] = []

    def __call__(self, formatted: str, label: str) -> None:
        """Record one formatted line and its label."""
        self.lines.append((formatted, label))

    @property
    def labels(self) -> list[str]:
        """Level labels in arrival order."""
        return [label for _, label in self.lines]

    @property
    def records(self) -> list[dict]:
        """Lines parsed as JSON (requires JSON format)."""
        return [json.loads(line) for line, _ in self.lines]

    @property
    def spans(self) -> list[dict]:
        """JSON records of span events."""
        return [r for r in self.records if r["level"] == "span"]

    @property
    def logs(self) -> list[dict]:
        """JSON records of log events."""
        return [r for r in self.records if r["level"] != "span"]

    def clear(self) -> None:
        """Forget everything captured so far."""
        self.lines.clear()


@pytest.fixture
def console_stream():
    """In-memory stream receiving the default registry's console output."""
    return io.StringIO()


@pytest.fixture(autouse=True)
def registry(console_stream):
    """Install a fresh default registry for the duration of a test.

    Yields:
        Registry with default settings (info threshold, spans off, no
        filters, console format) writing console output to
        ``console_stream``.
    """
    reg = Registry(sink=Sink(stream=console_stream))
    previous = set_registry(reg)
    reset_worker_ids()
    yield reg
    restore_console()
    reg.sink.close()
    set_registry(previous)


@pytest.fixture
def output(registry):
    """Capture the registry's output as JSON records via a writer.

    Yields:
        CapturedOutput collecting ``(formatted, label)`` pairs.
    """
    registry.set_json_format(True)
    captured = CapturedOutput()
    unsubscribe = registry.sink.add_writer(captured)
    yield captured
    unsubscribe()
