"""Rendering of :class:`~.funnel.FunnelPlan` objects to BigQuery SQL."""

from __future__ import annotations

import pandas as pd

from .config import WarehouseConfig
from .funnel import (
    FunnelPlan,
    FunnelStage,
    HitMatches,
    OccursAfterPrevious,
    OnPreviousPage,
    ParamMatches,
    PrecededByPrevious,
)
from .paths import contains_like_pattern, like_pattern, normalize_url_sql
from .sql import RenderedQuery

__all__ = ["render_funnel_sql"]

_EVENT_TYPE_CODES = {"url": 1, "event": 2}
_HIT_KIND_CODES = {"pageview": 1, "event": 2}

_FIRST_PER_SESSION = "QUALIFY ROW_NUMBER() OVER (PARTITION BY e.session_id ORDER BY e.created_at, e.event_id) = 1"


def _value_param(index: int) -> str:
    return f"stepValue{index}"


def _value_condition(column: str, pattern: str, param: str) -> str:
    operator = "LIKE" if "*" in pattern else "="
    return f"{column} {operator} @{param}"


def _param_condition(stage: FunnelStage, position: int, predicate: ParamMatches, config: WarehouseConfig) -> str:
    suffix = f"{stage.index}_{position}"
    operator = "LIKE" if predicate.operator == "contains" else "="
    return "\n".join(
        [
            "EXISTS (",
            "        SELECT 1",
            f"        FROM `{config.event_data_table_fqn}` d_{suffix}",
            f"        CROSS JOIN UNNEST(d_{suffix}.event_parameters) p_{suffix}",
            f"        WHERE d_{suffix}.website_event_id = e.event_id",
            f"          AND d_{suffix}.website_id = e.website_id",
            f"          AND d_{suffix}.created_at = e.created_at",
            f"          AND p_{suffix}.data_key = @step{stage.index}_pKey{position}",
            f"          AND p_{suffix}.string_value {operator} @step{stage.index}_pVal{position}",
            "      )",
        ]
    )


def _render_stage(stage: FunnelStage, config: WarehouseConfig, params: dict[str, object]) -> str:
    wheres: list[str] = []
    param_position = 0
    for predicate in stage.predicates:
        if isinstance(predicate, HitMatches):
            name = _value_param(stage.index)
            params[name] = like_pattern(predicate.pattern) if "*" in predicate.pattern else predicate.pattern
            wheres.append(f"e.event_type = {_EVENT_TYPE_CODES[predicate.kind]}")
            wheres.append(_value_condition("e.step_value", predicate.pattern, name))
        elif isinstance(predicate, OccursAfterPrevious):
            wheres.append("e.created_at > prev.step_time")
        elif isinstance(predicate, PrecededByPrevious):
            wheres.append(f"e.prev_event_type = {_EVENT_TYPE_CODES[predicate.kind]}")
            wheres.append(_value_condition("e.prev_step_value", predicate.pattern, _value_param(stage.index - 1)))
        elif isinstance(predicate, OnPreviousPage):
            wheres.append("e.url_path_normalized = prev.step_path")
        elif isinstance(predicate, ParamMatches):
            params[f"step{stage.index}_pKey{param_position}"] = predicate.key
            params[f"step{stage.index}_pVal{param_position}"] = (
                contains_like_pattern(predicate.value) if predicate.operator == "contains" else predicate.value
            )
            wheres.append(_param_condition(stage, param_position, predicate, config))
            param_position += 1

    lines = [
        f"{stage.name} AS (",
        "  SELECT e.session_id, e.created_at AS step_time, e.url_path_normalized AS step_path",
        "  FROM events e",
    ]
    if stage.previous_name is not None:
        lines.append(f"  JOIN {stage.previous_name} prev ON e.session_id = prev.session_id")
    lines.append("  WHERE " + "\n    AND ".join(wheres))
    lines.append(f"  {_FIRST_PER_SESSION}")
    lines.append(")")
    return "\n".join(lines)


def render_funnel_sql(
    plan: FunnelPlan,
    config: WarehouseConfig,
    *,
    website_id: str,
    start: pd.Timestamp,
    end: pd.Timestamp,
) -> RenderedQuery:
    """Render ``plan`` as one query returning ``(step, count)`` rows."""

    params: dict[str, object] = {"websiteId": website_id, "startDate": start, "endDate": end}
    url_norm = normalize_url_sql("url_path")
    event_types = ", ".join(str(_HIT_KIND_CODES[kind]) for kind in plan.hit_kinds)

    ctes = [
        "\n".join(
            [
                "events_raw AS (",
                "  SELECT",
                "    session_id,",
                "    event_id,",
                "    website_id,",
                "    event_type,",
                f"    CASE WHEN event_type = 1 THEN {url_norm} WHEN event_type = 2 THEN event_name END AS step_value,",
                f"    {url_norm} AS url_path_normalized,",
                "    created_at",
                f"  FROM `{config.events_table_fqn}`",
                "  WHERE website_id = @websiteId",
                "    AND created_at BETWEEN @startDate AND @endDate",
                f"    AND event_type IN ({event_types})",
                ")",
            ]
        ),
        "\n".join(
            [
                "events AS (",
                "  SELECT",
                "    *,",
                "    LAG(step_value) OVER (PARTITION BY session_id ORDER BY created_at, event_id) AS prev_step_value,",
                "    LAG(event_type) OVER (PARTITION BY session_id ORDER BY created_at, event_id) AS prev_event_type",
                "  FROM events_raw",
                ")",
            ]
        ),
    ]
    ctes.extend(_render_stage(stage, config, params) for stage in plan.stages)

    counts = "\nUNION ALL\n".join(
        f"SELECT {stage.index} AS step, (SELECT COUNT(DISTINCT session_id) FROM {stage.name}) AS count"
        for stage in plan.stages
    )
    sql = "\n".join(["WITH", ",\n".join(ctes), counts, "ORDER BY step"])
    return RenderedQuery(sql=sql, params=params)
