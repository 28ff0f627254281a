"""Tests for the file tailer."""

import os
import threading

import pytest

from tail_events.errors import SourceOpenError
from tail_events.tailer import FileTailer


class _Collector:
    """Runs tailer.lines() on a background thread and records every line."""

    def __init__(self, tailer: FileTailer):
        self.tailer = tailer
        self.lines: list[str] = []
        tailer.open()
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()

    def _run(self):
        for line in self.tailer.lines():
            self.lines.append(line)

    def stop(self):
        self.tailer.stop()
        self.thread.join(timeout=3)


def _append(path, text: str):
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)
        f.flush()


class TestStartPosition:
    def test_starts_at_end_by_default(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("existing line\n")
        c = _Collector(FileTailer(str(f), poll_interval=0.05))
        try:
            _append(f, "new line 1\nnew line 2\n")
            assert wait_for(lambda: len(c.lines) >= 2)
            assert c.lines == ["new line 1", "new line 2"]
        finally:
            c.stop()

    def test_from_beginning(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("one\ntwo\n")
        c = _Collector(FileTailer(str(f), from_beginning=True, poll_interval=0.05))
        try:
            assert wait_for(lambda: c.lines == ["one", "two"])
            _append(f, "three\n")
            assert wait_for(lambda: c.lines == ["one", "two", "three"])
        finally:
            c.stop()


class TestLines:
    def test_strips_whitespace(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("  padded  \n\tindented\t\n")
        c = _Collector(FileTailer(str(f), from_beginning=True, poll_interval=0.05))
        try:
            assert wait_for(lambda: c.lines == ["padded", "indented"])
        finally:
            c.stop()

    def test_partial_line_held_until_newline(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), poll_interval=0.05))
        try:
            _append(f, "abc")
            assert not wait_for(lambda: c.lines, timeout=0.3)
            _append(f, "def\n")
            assert wait_for(lambda: c.lines == ["abcdef"])
        finally:
            c.stop()

    def test_invalid_utf8_replaced(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_bytes(b"ok \xff\n")
        c = _Collector(FileTailer(str(f), from_beginning=True, poll_interval=0.05))
        try:
            assert wait_for(lambda: c.lines == ["ok \ufffd"])
        finally:
            c.stop()


class TestOpen:
    def test_missing_file_raises(self, tmp_path):
        tailer = FileTailer(str(tmp_path / "missing.log"))
        with pytest.raises(SourceOpenError) as excinfo:
            tailer.open()
        assert excinfo.value.path.endswith("missing.log")

    def test_lines_opens_lazily(self, tmp_path):
        tailer = FileTailer(str(tmp_path / "missing.log"))
        with pytest.raises(SourceOpenError):
            next(tailer.lines())


class TestStop:
    def test_stop_ends_iteration(self, tmp_path):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), poll_interval=5.0))
        c.stop()
        assert not c.thread.is_alive()
        assert c.tailer.stopped


class TestRotation:
    def test_reopen_follows_new_file(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), reopen=True, poll_interval=0.05))
        try:
            _append(f, "before rotation\n")
            assert wait_for(lambda: c.lines == ["before rotation"])
            os.rename(f, tmp_path / "app.log.1")
            f.write_text("after rotation\n")
            assert wait_for(lambda: c.lines == ["before rotation", "after rotation"])
            assert c.thread.is_alive()
        finally:
            c.stop()

    def test_reopen_waits_for_deleted_file(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), reopen=True, poll_interval=0.05))
        try:
            os.unlink(f)
            assert not wait_for(lambda: not c.thread.is_alive(), timeout=0.3)
            f.write_text("recreated\n")
            assert wait_for(lambda: c.lines == ["recreated"])
        finally:
            c.stop()

    def test_without_reopen_rotation_ends_tail(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), poll_interval=0.05))
        try:
            _append(f, "last\n")
            assert wait_for(lambda: c.lines == ["last"])
            os.rename(f, tmp_path / "app.log.1")
            f.write_text("never seen\n")
            assert wait_for(lambda: not c.thread.is_alive())
            assert c.lines == ["last"]
        finally:
            c.stop()

    def test_without_reopen_deletion_ends_tail(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), poll_interval=0.05))
        try:
            os.unlink(f)
            assert wait_for(lambda: not c.thread.is_alive())
        finally:
            c.stop()

    def test_unterminated_last_line_delivered_on_rotation(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), poll_interval=0.05))
        try:
            _append(f, "no newline")
            os.rename(f, tmp_path / "app.log.1")
            assert wait_for(lambda: not c.thread.is_alive())
            assert c.lines == ["no newline"]
        finally:
            c.stop()


class TestTruncation:
    def test_truncated_file_read_from_start(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTailer(str(f), poll_interval=0.05))
        try:
            _append(f, "first-long-line\nsecond-long-line\n")
            assert wait_for(lambda: len(c.lines) == 2)
            with open(f, "w", encoding="utf-8") as fh:
                fh.write("c\n")
            assert wait_for(lambda: c.lines[-1:] == ["c"])
            assert c.lines == ["first-long-line", "second-long-line", "c"]
        finally:
            c.stop()
