"""URL path normalization and wildcard matching.

Every comparison between a step value and a recorded URL happens on normalized
paths: the query string and fragment are removed, repeated slashes collapse to
one and trailing slashes are trimmed, with the root path kept as ``"/"``.
:func:`normalize_path` and :func:`normalize_url_sql` implement the same rule in
Python and in BigQuery SQL respectively.
"""

from __future__ import annotations

import re

from .errors import ValidationError

__all__ = [
    "WILDCARD",
    "contains_like_pattern",
    "like_pattern",
    "matches_pattern",
    "normalize_path",
    "normalize_url_sql",
]

WILDCARD = "*"

_QUERY_OR_FRAGMENT = re.compile(r"[?#].*", re.DOTALL)
_REPEATED_SLASHES = re.compile(r"//+")


def normalize_path(path: str | None) -> str:
    """Return the canonical form of ``path``."""

    stripped = _QUERY_OR_FRAGMENT.sub("", path or "")
    collapsed = _REPEATED_SLASHES.sub("/", stripped).rstrip("/")
    return collapsed or "/"


def normalize_url_sql(column: str = "url_path") -> str:
    """Return a BigQuery expression normalizing ``column`` like :func:`normalize_path`."""

    trimmed = f"RTRIM(REGEXP_REPLACE(REGEXP_REPLACE({column}, r'[?#].*', ''), r'//+', '/'), '/')"
    return f"CASE WHEN {trimmed} = '' THEN '/' ELSE {trimmed} END"


def matches_pattern(value: str, pattern: str) -> bool:
    """Return ``True`` if ``value`` matches ``pattern``.

    ``pattern`` is either a literal or contains a single ``*`` standing for any
    (possibly empty) sequence of characters.
    """

    if WILDCARD not in pattern:
        return value == pattern
    prefix, suffix = pattern.split(WILDCARD, 1)
    return (
        len(value) >= len(prefix) + len(suffix)
        and value.startswith(prefix)
        and value.endswith(suffix)
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_pattern(pattern: str) -> str:
    """Translate a wildcard step value into a ``LIKE`` pattern.

    ``%`` and ``_`` in the value are escaped so they keep their literal
    meaning. At most one wildcard is allowed.
    """

    if pattern.count(WILDCARD) > 1:
        raise ValidationError("step value may contain at most one '*' wildcard")
    return "%".join(_escape_like(part) for part in pattern.split(WILDCARD))


def contains_like_pattern(value: str) -> str:
    return f"%{_escape_like(value)}%"
