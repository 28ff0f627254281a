"""File tailer: yields stripped lines as they are appended to a file.

Handles:
- Start position (end of file by default, or the beginning)
- Log rotation (the path now names a different file), optionally reopening
- File truncation (seek back to start)
- Lines written in several chunks (held until their newline arrives)

A watchdog observer on the parent directory wakes the reader as soon as the
file changes; the poll interval bounds the wait when no event arrives.
"""

import logging
import os
import threading
from typing import Iterator

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from tail_events.errors import SourceOpenError

logger = logging.getLogger(__name__)

READ_SIZE = 64 * 1024

_UNCHANGED = "unchanged"
_TRUNCATED = "truncated"
_ROTATED = "rotated"
_GONE = "gone"


class _ChangeHandler(FileSystemEventHandler):
    """Sets *wake* whenever an event touches the tailed path."""

    def __init__(self, path: str, wake: threading.Event):
        super().__init__()
        self._path = path
        self._wake = wake

    def on_any_event(self, event):
        if event.is_directory:
            return
        for p in (event.src_path, getattr(event, "dest_path", "")):
            if p and os.path.abspath(os.fsdecode(p)) == self._path:
                self._wake.set()
                return


class FileTailer:
    def __init__(self, path: str, from_beginning: bool = False, reopen: bool = False,
                 poll_interval: float = 0.25):
        self._path = os.path.abspath(path)
        self._from_beginning = from_beginning
        self._reopen = reopen
        self._poll_interval = poll_interval
        self._file = None
        self._file_id: tuple[int, int] | None = None
        self._offset = 0
        self._partial = b""
        self._lost = False
        self._stopped = threading.Event()
        self._wake = threading.Event()
        self._observer = None

    @property
    def path(self) -> str:
        return self._path

    def open(self):
        """Open the file. Raises SourceOpenError if it cannot be opened."""
        try:
            self._open_file(seek_end=not self._from_beginning)
        except OSError as e:
            raise SourceOpenError(self._path, str(e)) from e
        self._start_observer()

    def stop(self):
        """Ask lines() to finish. Safe to call from any thread."""
        self._stopped.set()
        self._wake.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def lines(self) -> Iterator[str]:
        """Yield lines in file order until stopped or the file goes away."""
        if self._file is None:
            self.open()
        try:
            while not self._stopped.is_set():
                self._wake.clear()
                chunk = self._file.read(READ_SIZE) if self._file is not None else b""
                if chunk:
                    self._offset += len(chunk)
                    yield from self._split(chunk)
                    continue

                status = self._check_file()
                if status == _TRUNCATED:
                    logger.info("File truncation detected for %s", self._path)
                    self._file.seek(0)
                    self._offset = 0
                    self._partial = b""
                    continue
                if status == _ROTATED:
                    yield from self._flush_partial()
                    if not self._reopen:
                        logger.info("File %s was replaced, stopping tail", self._path)
                        return
                    logger.info("File rotation detected for %s, reopening", self._path)
                    self._close_file()
                    try:
                        self._open_file(seek_end=False)
                    except OSError as e:
                        logger.debug("Reopen of %s failed (%s), retrying", self._path, e)
                        self._lost = True
                    continue
                if status == _GONE:
                    yield from self._flush_partial()
                    if not self._reopen:
                        logger.info("File %s no longer exists, stopping tail", self._path)
                        return
                    if not self._lost:
                        logger.debug("Waiting for %s to reappear...", self._path)
                    self._lost = True

                self._wake.wait(self._poll_interval)
        finally:
            self.close()

    def close(self):
        """Release the file handle and the observer."""
        self._close_file()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=1)
            self._observer = None

    # ------------------------------------------------------------------

    def _open_file(self, seek_end: bool):
        self._file = open(self._path, "rb")
        st = os.fstat(self._file.fileno())
        self._file_id = (st.st_dev, st.st_ino)
        self._offset = self._file.seek(0, os.SEEK_END) if seek_end else 0
        self._partial = b""
        self._lost = False
        logger.debug("Opened %s (inode=%d) at offset %d", self._path, st.st_ino, self._offset)

    def _close_file(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def _start_observer(self):
        observer = Observer()
        try:
            observer.schedule(_ChangeHandler(self._path, self._wake),
                              os.path.dirname(self._path), recursive=False)
            observer.start()
        except OSError as e:
            logger.warning("Filesystem notifications unavailable for %s (%s), polling every %.2fs",
                           self._path, e, self._poll_interval)
            return
        self._observer = observer

    def _check_file(self) -> str:
        try:
            st = os.stat(self._path)
        except FileNotFoundError:
            return _GONE
        # After the path disappeared, whatever shows up there is a new file
        if self._lost or (st.st_dev, st.st_ino) != self._file_id:
            return _ROTATED
        if st.st_size < self._offset:
            return _TRUNCATED
        return _UNCHANGED

    def _split(self, chunk: bytes) -> Iterator[str]:
        data = self._partial + chunk
        *complete, self._partial = data.split(b"\n")
        for raw in complete:
            yield raw.decode("utf-8", errors="replace").strip()

    def _flush_partial(self) -> Iterator[str]:
        if self._partial:
            raw, self._partial = self._partial, b""
            yield raw.decode("utf-8", errors="replace").strip()
