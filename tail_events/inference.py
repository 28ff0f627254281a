"""Best-guess typing of raw captured strings.

Resolution order, first success wins:
  1. Caller-supplied time formats, in order
  2. Built-in timestamp formats (nginx, ANSI C, Unix date, RFC 822/850/1123/3339)
  3. Signed 64-bit integer
  4. Boolean
  5. Float (NaN collapses to 0.0)
  6. The input string, unchanged
"""

import math
import re
from datetime import datetime, timezone
from typing import Iterable

# ---------------------------------------------------------------------------
# Built-in timestamp formats, tried after the configured ones
# ---------------------------------------------------------------------------

FALLBACK_TIME_FORMATS = (
    "%d/%b/%Y:%H:%M:%S %z",          # nginx / apache: 02/Jan/2006:15:04:05 -0700
    "%a %b %d %H:%M:%S %Y",          # ANSI C: Mon Jan  2 15:04:05 2006
    "%a %b %d %H:%M:%S %Z %Y",       # Unix date: Mon Jan  2 15:04:05 UTC 2006
    "%a %b %d %H:%M:%S %z %Y",       # Ruby date: Mon Jan 02 15:04:05 -0700 2006
    "%d %b %y %H:%M %Z",             # RFC 822: 02 Jan 06 15:04 UTC
    "%d %b %y %H:%M %z",             # RFC 822 numeric zone
    "%A, %d-%b-%y %H:%M:%S %Z",      # RFC 850: Monday, 02-Jan-06 15:04:05 UTC
    "%a, %d %b %Y %H:%M:%S %Z",      # RFC 1123: Mon, 02 Jan 2006 15:04:05 UTC
    "%a, %d %b %Y %H:%M:%S %z",      # RFC 1123 numeric zone
    "%Y-%m-%dT%H:%M:%S%z",           # RFC 3339
    "%Y-%m-%dT%H:%M:%S.%f%z",        # RFC 3339 with fractional seconds
)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_INF_WORDS = frozenset({"inf", "infinity"})

# ---------------------------------------------------------------------------
# Individual parsers: each returns None when the string is not of its type
# ---------------------------------------------------------------------------


def parse_time(raw: str, formats: Iterable[str]) -> datetime | None:
    for fmt in formats:
        try:
            ts = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        # No zone indicator in the text means UTC
        return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)
    return None


def parse_int(raw: str) -> int | None:
    if not _INT_RE.fullmatch(raw):
        return None
    value = int(raw)
    if value < INT64_MIN or value > INT64_MAX:
        return None
    return value


def parse_bool(raw: str) -> bool | None:
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return None


def parse_float(raw: str) -> float | None:
    # float() also accepts padding, digit separators and non-ASCII digits
    if not raw or not raw.isascii() or "_" in raw or raw != raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    # Out-of-range literals like 1e400 overflow to inf; only a spelled-out infinity is one
    if math.isinf(value) and raw.lstrip("+-").lower() not in _INF_WORDS:
        return None
    return value


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def infer(raw: str, time_formats: Iterable[str] = ()):
    """Return *raw* converted to the most specific type it parses as.

    Never raises: a string that fits no other type comes back unchanged.
    """
    ts = parse_time(raw, time_formats)
    if ts is not None:
        return ts
    ts = parse_time(raw, FALLBACK_TIME_FORMATS)
    if ts is not None:
        return ts

    as_int = parse_int(raw)
    if as_int is not None:
        return as_int

    as_bool = parse_bool(raw)
    if as_bool is not None:
        return as_bool

    as_float = parse_float(raw)
    if as_float is not None:
        # "NaN" still reads as numeric, but NaN must not reach the sink
        return 0.0 if math.isnan(as_float) else as_float

    return raw
