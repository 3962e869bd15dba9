"""Session hit streams.

The matchers want hits grouped per session and in chronological order. Ties
on the timestamp keep the order the hits were supplied in, which for rows
fetched from BigQuery is the order of their event ids.
"""

from __future__ import annotations

from collections.abc import Iterable

from .config import WarehouseConfig
from .paths import normalize_url_sql
from .types import Hit

__all__ = [
    "group_sessions",
    "render_pageview_hits_sql",
]


def group_sessions(hits: Iterable[Hit]) -> dict[str, list[Hit]]:
    """Return ``hits`` grouped by session, each list in chronological order."""

    sessions: dict[str, list[Hit]] = {}
    for hit in hits:
        sessions.setdefault(hit.session_id, []).append(hit)
    for session_hits in sessions.values():
        session_hits.sort(key=lambda h: h.timestamp)
    return sessions


def render_pageview_hits_sql(config: WarehouseConfig, *, anchor_is_wildcard: bool | None = None) -> str:
    """SQL fetching the normalized pageviews of a website in a window.

    With ``anchor_is_wildcard`` set, only sessions that visited a page matching
    the ``@anchor`` parameter are returned.
    """

    url_norm = normalize_url_sql("url_path")
    lines = [
        "SELECT",
        "  session_id,",
        f"  {url_norm} AS url_path,",
        "  created_at,",
        "  event_id",
        f"FROM `{config.events_table_fqn}`",
        "WHERE website_id = @websiteId",
        "  AND created_at BETWEEN @startDate AND @endDate",
        "  AND event_type = 1",
    ]
    if anchor_is_wildcard is not None:
        operator = "LIKE" if anchor_is_wildcard else "="
        lines.append(f"QUALIFY LOGICAL_OR({url_norm} {operator} @anchor) OVER (PARTITION BY session_id)")
    lines.append("ORDER BY session_id, created_at, event_id")
    return "\n".join(lines)
