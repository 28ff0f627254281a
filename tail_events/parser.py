"""Line parser: named-capture regex -> typed event dict.

Every named group becomes one field, typed with ``infer``. A group named
``uri`` is additionally split into its query parameters, which land in the
same event as sibling fields.
"""

import logging
import re
from typing import Iterable
from urllib.parse import parse_qs, urlsplit

from tail_events.config import Config
from tail_events.errors import NoMatch, PatternCompileError
from tail_events.inference import infer
from tail_events.keys import unique_name
from tail_events.metrics import Metrics

logger = logging.getLogger(__name__)

URI_FIELD = "uri"

# A '%' not followed by two hex digits is an invalid escape
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def expand_uri(uri: str, into: dict, keys_to_ignore: Iterable[str] = (),
               time_patterns: Iterable[str] = ()) -> bool:
    """Add the query parameters of *uri* to *into*.

    Only the first value of a repeated parameter is used. A query pair with an
    invalid escape is skipped on its own. Returns False, and leaves *into*
    untouched, if the URI itself is malformed (unsplittable, or an invalid
    escape in the path or fragment).
    """
    if not uri:
        return True
    try:
        parts = urlsplit(uri)
    except ValueError:
        return False
    if _BAD_ESCAPE_RE.search(parts.path) or _BAD_ESCAPE_RE.search(parts.fragment):
        return False

    pairs = [p for p in parts.query.split("&") if p and not _BAD_ESCAPE_RE.search(p)]
    query = parse_qs("&".join(pairs), keep_blank_values=True)

    ignored = frozenset(keys_to_ignore)
    for key, values in query.items():
        new_key = unique_name(key, into)
        if key in ignored or new_key in ignored or not values:
            continue
        into[new_key] = infer(values[0], time_patterns)
    return True


class LineParser:
    def __init__(self, config: Config, metrics: Metrics | None = None):
        self._config = config
        self._metrics = metrics or Metrics()
        self._regex: re.Pattern | None = None
        self._groups: list[str] = []
        self.compile_error: PatternCompileError | None = None

    def init(self) -> bool:
        """Compile the configured pattern. On failure every later parse raises NoMatch."""
        pattern = self._config.pattern
        try:
            self._regex = re.compile(pattern)
        except re.error as e:
            self.compile_error = PatternCompileError(pattern, str(e))
            self._metrics.increment("pattern_compile_failures")
            logger.warning("Could not compile pattern. Error: %s", e)
            return False

        # groupindex maps name -> group number; keep the pattern's order
        self._groups = [name for name, _ in sorted(self._regex.groupindex.items(),
                                                   key=lambda item: item[1])]
        return True

    @property
    def ready(self) -> bool:
        return self._regex is not None

    def _should_ignore(self, key: str) -> bool:
        return key == "" or key in self._config.keys_to_ignore

    def parse(self, line: str) -> dict:
        """Parse one line into an event. Raises NoMatch when the pattern does not match."""
        if self._regex is None:
            raise NoMatch(line)
        match = self._regex.search(line)
        if match is None:
            raise NoMatch(line)

        time_patterns = self._config.time_patterns
        event: dict = {}
        for name in self._groups:
            # A group that did not take part in the match captured nothing
            text = match.group(name) or ""
            if not self._should_ignore(name):
                event[unique_name(name, event)] = infer(text, time_patterns)
            if name == URI_FIELD:
                ok = expand_uri(text, event, self._config.keys_to_ignore, time_patterns)
                if not ok:
                    self._metrics.increment("uri_parse_failures")
                    logger.debug("Could not parse uri %r, query parameters skipped", text)
        return event
