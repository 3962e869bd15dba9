"""Funnel and journey analyses over hits that are already in memory.

These run the same stages as :class:`~.client.UmamiBigQuery` but read the hit
stream from the caller instead of BigQuery, which is handy for exports and
for checking results against a known sample.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import pandas as pd

from .funnel import compile_funnel, entry_mode, evaluate_funnel
from .hits import group_sessions
from .journey import aggregate_flows, build_journey_graph, prune_flows, session_flows, validate_journey_request
from .paths import normalize_path
from .steps import StepInput, prepare_steps, require_url_steps
from .timing import aggregate_timings, compute_session_timings
from .types import Direction, FunnelStepResult, Hit, JourneyResponse, TimingResult

__all__ = ["funnel_counts", "funnel_timings", "journey_graph"]


def funnel_counts(
    hits: Iterable[Hit],
    steps: Sequence[StepInput],
    *,
    only_direct_entry: bool = True,
) -> list[FunnelStepResult]:
    prepared = prepare_steps(steps)
    plan = compile_funnel(prepared, entry_mode(only_direct_entry))
    counts = evaluate_funnel(plan, hits)
    return [
        FunnelStepResult(step_index=i, value=s.value, kind=s.kind, count=counts[i], params=list(s.params))
        for i, s in enumerate(prepared)
    ]


def funnel_timings(
    hits: Iterable[Hit],
    steps: Sequence[StepInput],
    *,
    only_direct_entry: bool = True,
    workers: int = 1,
) -> list[TimingResult]:
    values = require_url_steps(prepare_steps(steps))
    pageviews = pd.DataFrame(
        [(h.session_id, h.path_or_name, h.timestamp) for h in hits if h.kind == "pageview"],
        columns=["session_id", "url_path", "created_at"],
    )
    records = compute_session_timings(pageviews, values, strict=only_direct_entry, workers=workers)
    return aggregate_timings(records, values)


def journey_graph(
    hits: Iterable[Hit],
    start_url: str,
    *,
    steps: int = 3,
    limit: int = 30,
    direction: Direction = "forward",
) -> JourneyResponse:
    validate_journey_request(start_url, steps, limit, direction)
    start_page = normalize_path(start_url)
    sessions = group_sessions(h for h in hits if h.kind == "pageview")
    flows = aggregate_flows(
        flow
        for session_hits in sessions.values()
        for flow in session_flows([h.path_or_name for h in session_hits], start_page, steps, direction)
    )
    nodes, links = build_journey_graph(prune_flows(flows, start_page, limit))
    return JourneyResponse(nodes=nodes, links=links)
