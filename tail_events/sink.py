"""SinkWorker: consumer thread that drains the queue and appends JSON lines to a file."""

import json
import logging
import queue
import threading
import time
from datetime import date, datetime
from typing import Callable

from tail_events.errors import SerializeError, WriteError
from tail_events.metrics import Metrics

logger = logging.getLogger(__name__)

GET_TIMEOUT_SECONDS = 0.25


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_event(event: dict) -> str:
    """One compact JSON object, timestamps as ISO 8601. Raises SerializeError."""
    try:
        return json.dumps(event, default=_json_default, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializeError(f"Unable to marshal event {event!r}: {e}") from e


class SinkWorker(threading.Thread):
    """Appends every queued event to the output file, one JSON object per line.

    *output_path* is either a fixed path or a callable returning the current
    path; it is re-evaluated before every write so the destination can move
    while the worker runs.
    """

    def __init__(self, q: queue.Queue, output_path: str | Callable[[], str],
                 metrics: Metrics | None = None):
        super().__init__(daemon=True, name="sink-worker")
        self._queue = q
        self._output_path = output_path if callable(output_path) else (lambda: output_path)
        self._metrics = metrics or Metrics()
        self._quit = threading.Event()
        self._out = None
        self._out_name: str | None = None
        self.start_time: float | None = None

    @property
    def output_name(self) -> str | None:
        return self._out_name

    def init(self):
        """Open the configured output file ahead of the first event."""
        self._cached_handle()

    def _cached_handle(self):
        """Return the handle for the currently configured path, reopening if it moved."""
        name = self._output_path()
        if name == self._out_name and self._out is not None:
            return self._out

        self._close()
        try:
            self._out = open(name, "a", encoding="utf-8")
        except OSError as e:
            logger.warning("Unable to create output file %s because of %s", name, e)
            return None
        self._out_name = name
        logger.info("Writing events to %s", name)
        return self._out

    def _close(self):
        if self._out is not None and not self._out.closed:
            self._out.close()
        self._out = None
        self._out_name = None

    def write(self, event: dict):
        """Serialize and append one event. Raises SerializeError or WriteError."""
        line = serialize_event(event)
        out = self._cached_handle()
        if out is None:
            raise WriteError(f"no writable output file at {self._output_path()}")
        try:
            out.write(line + "\n")
            out.flush()
        except OSError as e:
            raise WriteError(f"write to {self._out_name} failed: {e}") from e

    def _consume(self, event: dict):
        logger.debug("Worker received: %s", event)
        try:
            self.write(event)
        except SerializeError as e:
            self._metrics.increment("serialize_failures")
            logger.warning("%s", e)
            return
        except WriteError as e:
            self._metrics.increment("write_failures")
            logger.warning("Dropping event: %s", e)
            return
        self._metrics.increment("events_written")

    def run(self):
        self.start_time = time.time()
        logger.info("SinkWorker starting work")
        while not self._quit.is_set():
            try:
                event = self._queue.get(timeout=GET_TIMEOUT_SECONDS)
            except queue.Empty:
                continue
            self._consume(event)

        # Best effort: whatever is already queued, nothing sent after stop()
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            self._consume(event)
        self._close()
        logger.info("SinkWorker received quit")

    def stop(self, timeout: float = 5.0):
        """Signal the consume loop to quit and wait for it.

        The loop closes the output file on exit. If it is still busy after
        *timeout*, the handle is left for it to close.
        """
        self._quit.set()
        if self.is_alive():
            self.join(timeout=timeout)
        if self.is_alive():
            logger.warning("SinkWorker still writing after %.1fs, it will close %s on exit",
                           timeout, self._out_name)
            return
        self._close()
