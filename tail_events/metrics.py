"""Thread-safe operational counters shared by the pipeline and sink workers."""

import json
import os
import tempfile
import threading
import time
from collections import defaultdict
from datetime import datetime, timezone


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._start_time = time.monotonic()

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counters[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict:
        """Return a point-in-time copy of all counters."""
        with self._lock:
            counters = dict(self._counters)
            elapsed = time.monotonic() - self._start_time

        return {
            "counters": counters,
            "uptime_seconds": round(elapsed, 1),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }

    def save(self, path: str) -> None:
        """Atomic write: tmp file in the target directory, then os.replace."""
        directory = os.path.dirname(path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.snapshot(), f, indent=2)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
