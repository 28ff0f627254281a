"""Synchronous enqueue of parsed events onto the bounded shared queue.

Events are put from the reader's own thread, so the sink sees them in file
order. When the queue is full the overflow policy decides:

  block        wait for the sink to make room (backpressure on the reader)
  drop_oldest  evict the oldest queued event and enqueue the new one
"""

import logging
import queue
import threading

from tail_events.metrics import Metrics

logger = logging.getLogger(__name__)

BLOCK_RECHECK_SECONDS = 0.1


class EventPublisher:
    def __init__(self, q: queue.Queue, overflow: str = "block", metrics: Metrics | None = None,
                 stop_event: threading.Event | None = None):
        if overflow not in ("block", "drop_oldest"):
            raise ValueError(f"unknown overflow policy: {overflow!r}")
        self._queue = q
        self._overflow = overflow
        self._metrics = metrics or Metrics()
        self._stop_event = stop_event or threading.Event()

    def publish(self, event: dict) -> bool:
        """Enqueue *event*. Returns False if it was abandoned because of a stop."""
        if self._overflow == "drop_oldest":
            self._put_evicting(event)
            return True

        while True:
            try:
                self._queue.put(event, timeout=BLOCK_RECHECK_SECONDS)
                return True
            except queue.Full:
                if self._stop_event.is_set():
                    self._metrics.increment("events_abandoned")
                    logger.debug("Queue full during shutdown, event abandoned")
                    return False

    def _put_evicting(self, event: dict):
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    continue
                self._metrics.increment("events_evicted")
                logger.debug("Queue full, evicted oldest event")
