"""Relay spanlog output from worker threads to one consuming thread.

Worker threads log and time spans locally but never write output; every
event crosses a one-way channel (usually a ``queue.Queue``) as a plain
dict message. The consuming thread replays the messages through its own
registry, so filtering and formatting happen in exactly one place.

Full logger forwarding (recommended):

    Worker thread::

        from spanlog.worker import create_worker_logger

        log = create_worker_logger(channel.put_nowait, "km:worker:parse")
        log.info("processing", file="test.md")
        with log.span("parse") as span:
            span.span_data["lines"] = 100

    Consuming thread::

        from spanlog.worker import create_worker_log_handler, drain

        handle = create_worker_log_handler()
        drain(channel, handle)

Console forwarding (stdlib logging calls made on the worker thread):

    from spanlog.worker import forward_console, restore_console

    forward_console(channel.put_nowait, namespace="km:worker:parse")
    logging.getLogger(__name__).info("forwarded")
    restore_console()
"""

from spanlog.worker.capture import (
    ConsoleCapture,
    LoggingCapture,
    forward_console,
    restore_console,
)
from spanlog.worker.consumer import (
    create_worker_console_handler,
    create_worker_log_handler,
    drain,
    format_console_args,
)
from spanlog.worker.messages import (
    WorkerConsoleMessage,
    WorkerLogMessage,
    WorkerMessage,
    WorkerSpanMessage,
    is_worker_console_message,
    is_worker_log_message,
    is_worker_message,
    is_worker_span_message,
)
from spanlog.worker.producer import (
    WorkerLogger,
    WorkerSpanLogger,
    create_worker_logger,
    reset_worker_ids,
)
from spanlog.worker.serialize import serialize_arg

__all__ = [
    # Messages
    "WorkerConsoleMessage",
    "WorkerLogMessage",
    "WorkerMessage",
    "WorkerSpanMessage",
    "is_worker_console_message",
    "is_worker_log_message",
    "is_worker_message",
    "is_worker_span_message",
    "serialize_arg",
    # Producer
    "WorkerLogger",
    "WorkerSpanLogger",
    "create_worker_logger",
    "reset_worker_ids",
    # Console capture
    "ConsoleCapture",
    "LoggingCapture",
    "forward_console",
    "restore_console",
    # Consumer
    "create_worker_console_handler",
    "create_worker_log_handler",
    "drain",
    "format_console_args",
]
