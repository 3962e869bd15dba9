"""Funnel timing: per-session step matching and aggregation.

Each session's ordered pageviews are matched against the URL pattern with a
single forward pass. Matched timestamps turn into transition records, which
are then reduced to a mean and a median per transition.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import islice

import pandas as pd

from .paths import matches_pattern
from .types import TimingResult

__all__ = [
    "TOTAL_STEP",
    "TransitionRecord",
    "aggregate_timings",
    "compute_session_timings",
    "match_session",
    "session_transitions",
]

TOTAL_STEP = -1


@dataclass(frozen=True)
class TransitionRecord:
    step: int
    diff_seconds: int


def match_session(
    paths: Sequence[str],
    timestamps: Sequence[pd.Timestamp],
    steps: Sequence[str],
    strict: bool,
) -> list[pd.Timestamp]:
    """Return the timestamp matched for each step, up to the first unmet step.

    An empty list means the session never reached the first step.
    """

    if len(steps) < 2:
        return []

    last = next((i for i, path in enumerate(paths) if matches_pattern(path, steps[0])), None)
    if last is None:
        return []

    matched = [timestamps[last]]
    for step in steps[1:]:
        if strict:
            found = last + 1 if last + 1 < len(paths) and matches_pattern(paths[last + 1], step) else None
        else:
            found = next(
                (i for i in range(last + 1, len(paths)) if matches_pattern(paths[i], step)),
                None,
            )
        if found is None:
            break
        last = found
        matched.append(timestamps[found])
    return matched


def _seconds_between(start: pd.Timestamp, end: pd.Timestamp) -> int:
    # Halves round up.
    return math.floor((pd.Timestamp(end) - pd.Timestamp(start)).total_seconds() + 0.5)


def session_transitions(matched: Sequence[pd.Timestamp], step_count: int) -> list[TransitionRecord]:
    """Turn matched timestamps into transition records.

    The total record is only emitted when every one of ``step_count`` steps
    matched.
    """

    records = [
        TransitionRecord(step=index, diff_seconds=_seconds_between(a, b))
        for index, (a, b) in enumerate(zip(matched, matched[1:]))
    ]
    if step_count >= 2 and len(matched) == step_count:
        records.append(TransitionRecord(step=TOTAL_STEP, diff_seconds=_seconds_between(matched[0], matched[-1])))
    return records


def _match_chunk(
    sessions: list[tuple[list[str], list[pd.Timestamp]]], steps: Sequence[str], strict: bool
) -> list[TransitionRecord]:
    records: list[TransitionRecord] = []
    for paths, timestamps in sessions:
        records.extend(session_transitions(match_session(paths, timestamps, steps, strict), len(steps)))
    return records


def _chunks(items: Iterable, size: int):
    iterator = iter(items)
    while chunk := list(islice(iterator, size)):
        yield chunk


def compute_session_timings(
    hits: pd.DataFrame,
    steps: Sequence[str],
    strict: bool,
    *,
    workers: int = 1,
    chunk_size: int = 5000,
) -> list[TransitionRecord]:
    """Match every session in ``hits`` and return all transition records.

    ``hits`` needs ``session_id``, ``url_path`` and ``created_at`` columns.
    Sessions are matched independently, so chunks of sessions are spread over
    ``workers`` threads and the results concatenated.
    """

    if hits.empty:
        return []

    ordered = hits.sort_values(["session_id", "created_at"], kind="stable")
    sessions = [
        (group["url_path"].tolist(), list(pd.to_datetime(group["created_at"])))
        for _, group in ordered.groupby("session_id", sort=False)
    ]

    if workers <= 1 or len(sessions) <= chunk_size:
        return _match_chunk(sessions, steps, strict)

    records: list[TransitionRecord] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        for chunk_records in pool.map(lambda chunk: _match_chunk(chunk, steps, strict), _chunks(sessions, chunk_size)):
            records.extend(chunk_records)
    return records


def aggregate_timings(records: Iterable[TransitionRecord], steps: Sequence[str]) -> list[TimingResult]:
    """Reduce transition records to one :class:`TimingResult` per transition.

    The median is the lower middle value rather than an interpolation. Steps no
    session reached do not appear in the result. The total row comes first.
    """

    df = pd.DataFrame([(r.step, r.diff_seconds) for r in records], columns=["step", "diff"])
    if df.empty:
        return []

    grouped = df.groupby("step")["diff"]
    summary = pd.DataFrame(
        {
            "avg": grouped.mean(),
            "median": grouped.quantile(0.5, interpolation="lower"),
            "count": grouped.size(),
        }
    ).sort_index()

    results: list[TimingResult] = []
    for step, row in summary.iterrows():
        step = int(step)
        if step == TOTAL_STEP:
            from_value, to_value, to_step = "Total", "Total", len(steps) - 1
        else:
            from_value, to_value, to_step = steps[step], steps[step + 1], step + 1
        results.append(
            TimingResult(
                from_step=step,
                to_step=to_step,
                avg_seconds=float(row["avg"]),
                median_seconds=float(row["median"]),
                sample_count=int(row["count"]),
                from_value=from_value,
                to_value=to_value,
            )
        )
    return results
