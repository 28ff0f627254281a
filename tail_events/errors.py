"""Error taxonomy for the parse and stream pipeline.

Per-line and per-event errors (NoMatch, SerializeError, WriteError) are
recovered where they occur. Start-up errors (PatternCompileError,
SourceOpenError) leave the affected worker idle.
"""


class TailEventsError(Exception):
    """Base class for all pipeline errors."""


class PatternCompileError(TailEventsError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"could not compile pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class NoMatch(TailEventsError):
    def __init__(self, line: str):
        super().__init__(f"line did not match pattern: {line!r}")
        self.line = line


class SourceOpenError(TailEventsError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"input file could not be opened: {path}: {reason}")
        self.path = path
        self.reason = reason


class SerializeError(TailEventsError):
    pass


class WriteError(TailEventsError):
    pass
