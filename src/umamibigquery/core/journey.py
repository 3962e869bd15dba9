"""Journey flow graphs rooted at a start page.

Each session is walked outward from its first visit to the start page, one
relative step at a time, yielding ``(step, source, target)`` transitions.
Transitions are counted across sessions, cut to the heaviest edges per step
and trimmed to the pages reachable from the start page before the node and
edge lists are assembled.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import pandas as pd

from .config import WarehouseConfig
from .errors import ValidationError
from .paths import normalize_url_sql
from .sql import RenderedQuery
from .types import Direction, JourneyEdge, JourneyNode

__all__ = [
    "FLOW_COLUMNS",
    "MAX_HORIZON",
    "aggregate_flows",
    "build_journey_graph",
    "prune_flows",
    "render_journey_sql",
    "session_flows",
    "validate_journey_request",
]

FLOW_COLUMNS = ["step", "source", "target", "value"]
MAX_HORIZON = 15
_DIRECTIONS = ("forward", "backward")


def validate_journey_request(start_url: str | None, horizon: int, limit: int, direction: str) -> None:
    if not start_url or not start_url.strip():
        raise ValidationError("start_url is required")
    if direction not in _DIRECTIONS:
        raise ValidationError(f"direction must be one of {_DIRECTIONS}, got {direction!r}")
    if not 1 <= horizon <= MAX_HORIZON:
        raise ValidationError(f"steps must be between 1 and {MAX_HORIZON}")
    if limit < 1:
        raise ValidationError("limit must be at least 1")


def session_flows(
    paths: Sequence[str],
    start_url: str,
    horizon: int,
    direction: Direction = "forward",
) -> list[tuple[int, str, str]]:
    """Return the transitions one session contributes to a journey."""

    try:
        anchor = list(paths).index(start_url)
    except ValueError:
        return []

    if direction == "backward":
        walk = list(paths[: anchor + 1])[::-1]
    else:
        walk = list(paths[anchor:])

    flows = []
    for step in range(min(horizon, len(walk) - 1)):
        source, target = walk[step], walk[step + 1]
        if source == target:
            continue
        if step > 0 and start_url in (source, target):
            continue
        flows.append((step, source, target))
    return flows


def aggregate_flows(flows: Iterable[tuple[int, str, str]]) -> pd.DataFrame:
    """Count identical transitions across sessions."""

    df = pd.DataFrame(list(flows), columns=FLOW_COLUMNS[:3])
    if df.empty:
        return pd.DataFrame(columns=FLOW_COLUMNS)
    return df.groupby(FLOW_COLUMNS[:3], as_index=False).size().rename(columns={"size": "value"})


def prune_flows(flows: pd.DataFrame, start_url: str, limit: int) -> pd.DataFrame:
    """Keep the ``limit`` heaviest edges per step whose source is reachable.

    A source at step ``n > 0`` is reachable when it is the target of a kept
    edge at step ``n - 1``; at step 0 only the start page is.
    """

    if flows.empty:
        return pd.DataFrame(columns=FLOW_COLUMNS)

    ranked = flows.sort_values(["step", "value", "source", "target"], ascending=[True, False, True, True])
    top = ranked.groupby("step", sort=True).head(limit)

    kept = []
    reachable = {start_url}
    for step in range(int(top["step"].max()) + 1):
        at_step = top[(top["step"] == step) & top["source"].isin(reachable)]
        if at_step.empty:
            break
        kept.append(at_step)
        reachable = set(at_step["target"])

    if not kept:
        return pd.DataFrame(columns=FLOW_COLUMNS)
    return pd.concat(kept, ignore_index=True)[FLOW_COLUMNS]


def build_journey_graph(flows: pd.DataFrame) -> tuple[list[JourneyNode], list[JourneyEdge]]:
    """Assemble nodes and edges from pruned flows.

    Nodes are keyed by ``(step, page)`` and numbered in order of first sight.
    """

    nodes: list[JourneyNode] = []
    edges: list[JourneyEdge] = []
    registry: dict[tuple[int, str], int] = {}

    def node_id(step: int, page: str) -> int:
        key = (step, page)
        if key not in registry:
            registry[key] = len(nodes)
            nodes.append(JourneyNode(node_id=len(nodes), step_index=step, page_name=page))
        return registry[key]

    for row in flows.itertuples(index=False):
        step = int(row.step)
        source = node_id(step, row.source)
        target = node_id(step + 1, row.target)
        edges.append(JourneyEdge(source=source, target=target, weight=int(row.value)))
    return nodes, edges


def render_journey_sql(
    config: WarehouseConfig,
    *,
    website_id: str,
    start_url: str,
    start: pd.Timestamp,
    end: pd.Timestamp,
    horizon: int,
    limit: int,
    direction: Direction,
) -> RenderedQuery:
    """SQL returning the heaviest ``(step, source, target, value)`` flows per step."""

    backward = direction == "backward"
    window_function = "LAG" if backward else "LEAD"
    time_operator = "<=" if backward else ">="
    order = "DESC" if backward else "ASC"

    sql = "\n".join(
        [
            "WITH normalized AS (",
            "  SELECT",
            "    session_id,",
            f"    {normalize_url_sql('url_path')} AS url_path,",
            "    created_at",
            f"  FROM `{config.events_table_fqn}`",
            "  WHERE website_id = @websiteId",
            "    AND created_at BETWEEN @startDate AND @endDate",
            "    AND event_type = 1",
            "),",
            "session_events AS (",
            "  SELECT",
            "    *,",
            "    MIN(IF(url_path = @startUrl, created_at, NULL)) OVER (PARTITION BY session_id) AS start_time",
            "  FROM normalized",
            "),",
            "journey_steps AS (",
            "  SELECT",
            "    session_id,",
            "    url_path,",
            "    created_at,",
            f"    {window_function}(url_path) OVER (PARTITION BY session_id ORDER BY created_at) AS next_url",
            "  FROM session_events",
            "  WHERE start_time IS NOT NULL",
            f"    AND created_at {time_operator} start_time",
            "),",
            "renumbered_steps AS (",
            "  SELECT",
            "    url_path,",
            "    next_url,",
            f"    ROW_NUMBER() OVER (PARTITION BY session_id ORDER BY created_at {order}) - 1 AS step",
            "  FROM journey_steps",
            "),",
            "raw_flows AS (",
            "  SELECT step, url_path AS source, next_url AS target, COUNT(*) AS value",
            "  FROM renumbered_steps",
            "  WHERE step < @steps",
            "    AND next_url IS NOT NULL",
            "    AND url_path != next_url",
            "    AND (step > 0 OR url_path = @startUrl)",
            "    AND NOT (step > 0 AND (url_path = @startUrl OR next_url = @startUrl))",
            "  GROUP BY 1, 2, 3",
            ")",
            "SELECT step, source, target, value",
            "FROM raw_flows",
            "WHERE TRUE",
            "QUALIFY ROW_NUMBER() OVER (PARTITION BY step ORDER BY value DESC, source, target) <= @limit",
            "ORDER BY step, value DESC",
        ]
    )
    params: dict[str, object] = {
        "websiteId": website_id,
        "startUrl": start_url,
        "startDate": start,
        "endDate": end,
        "steps": horizon,
        "limit": limit,
    }
    return RenderedQuery(sql=sql, params=params)
