"""Behaviour of the funnel stage compiler and its in-memory evaluation."""

from __future__ import annotations

import random

import pytest

from conftest import event, pageview
from umamibigquery import StepDefinition, funnel_counts
from umamibigquery.core.funnel import (
    HitMatches,
    OccursAfterPrevious,
    OnPreviousPage,
    ParamMatches,
    PrecededByPrevious,
    compile_funnel,
    evaluate_funnel,
    match_session_stages,
)
from umamibigquery.core.hits import group_sessions
from umamibigquery.core.steps import prepare_steps


def _url_steps(*values: str) -> list[StepDefinition]:
    return [StepDefinition(kind="url", value=v) for v in values]


@pytest.fixture
def adjacency_sessions():
    return [
        pageview("s1", 0, "/a"),
        pageview("s1", 60, "/b"),
        pageview("s1", 120, "/c"),
        pageview("s2", 0, "/a"),
        pageview("s2", 30, "/x"),
        pageview("s2", 60, "/b"),
        pageview("s2", 120, "/c"),
    ]


def test_strict_mode_requires_adjacent_steps(adjacency_sessions) -> None:
    results = funnel_counts(adjacency_sessions, _url_steps("/a", "/b", "/c"), only_direct_entry=True)
    assert [r.count for r in results] == [2, 1, 1]


def test_loose_mode_allows_intervening_hits(adjacency_sessions) -> None:
    results = funnel_counts(adjacency_sessions, _url_steps("/a", "/b", "/c"), only_direct_entry=False)
    assert [r.count for r in results] == [2, 2, 2]


def test_compile_funnel_builds_predicates_per_mode() -> None:
    steps = prepare_steps(
        [
            {"type": "url", "value": "/cart"},
            {
                "type": "event",
                "value": "checkout",
                "eventScope": "current-path",
                "params": [{"key": "method", "operator": "equals", "value": "card"}],
            },
        ]
    )

    strict = compile_funnel(steps, "strict")
    loose = compile_funnel(steps, "loose")

    assert strict.stages[0].predicates == (HitMatches("url", "/cart"),)
    assert strict.stages[1].predicates == (
        HitMatches("event", "checkout"),
        OccursAfterPrevious(),
        PrecededByPrevious("url", "/cart"),
        OnPreviousPage(),
        ParamMatches("method", "equals", "card"),
    )
    assert PrecededByPrevious("url", "/cart") not in loose.stages[1].predicates
    assert strict.hit_kinds == ["pageview", "event"]
    assert [s.name for s in strict.stages] == ["step1", "step2"]


def test_first_occurrence_is_the_qualifying_hit() -> None:
    hits = [
        pageview("s1", 0, "/a"),
        pageview("s1", 10, "/b"),
        pageview("s1", 20, "/a"),
        pageview("s1", 30, "/b"),
    ]
    plan = compile_funnel(prepare_steps(_url_steps("/a", "/b")), "loose")
    matched = match_session_stages(plan, group_sessions(hits)["s1"])
    assert [h.timestamp for h in matched] == [hits[0].timestamp, hits[1].timestamp]


def test_zero_count_truncates_the_chain() -> None:
    hits = [pageview("s1", 0, "/a"), pageview("s1", 10, "/c")]
    results = funnel_counts(hits, _url_steps("/a", "/b", "/c"), only_direct_entry=False)
    assert [r.count for r in results] == [1, 0, 0]


def test_self_transition_counts_repeat_visits() -> None:
    hits = [
        pageview("s1", 0, "/a"),
        pageview("s1", 10, "/a"),
        pageview("s2", 0, "/a"),
    ]
    results = funnel_counts(hits, _url_steps("/a", "/a"), only_direct_entry=True)
    assert [r.count for r in results] == [2, 1]


def test_wildcard_step_matches_prefix() -> None:
    hits = [
        pageview("s1", 0, "/products/42"),
        pageview("s1", 5, "/cart"),
        pageview("s2", 0, "/product"),
        pageview("s2", 5, "/cart"),
    ]
    results = funnel_counts(hits, _url_steps("/products/*", "/cart"))
    assert [r.count for r in results] == [1, 1]


def test_current_path_scope_compares_page_of_previous_match() -> None:
    hits = [
        pageview("s1", 0, "/cart"),
        event("s1", 5, "checkout", "/cart"),
        pageview("s2", 0, "/cart"),
        pageview("s2", 5, "/other"),
        event("s2", 10, "checkout", "/other"),
    ]
    scoped = [
        {"type": "url", "value": "/cart"},
        {"type": "event", "value": "checkout", "eventScope": "current-path"},
    ]
    anywhere = [
        {"type": "url", "value": "/cart"},
        {"type": "event", "value": "checkout", "eventScope": "anywhere"},
    ]

    assert [r.count for r in funnel_counts(hits, scoped, only_direct_entry=False)] == [2, 1]
    assert [r.count for r in funnel_counts(hits, anywhere, only_direct_entry=False)] == [2, 2]


def test_param_filters_apply_to_the_matched_hit() -> None:
    hits = [
        pageview("s1", 0, "/form"),
        event("s1", 5, "submit", "/form", status="ok"),
        pageview("s2", 0, "/form"),
        event("s2", 5, "submit", "/form", status="failed"),
        event("s2", 6, "other", "/form", status="ok"),
        pageview("s3", 0, "/form"),
        event("s3", 5, "submit", "/form", status="not ok"),
    ]
    equals = [
        {"type": "url", "value": "/form"},
        {"type": "event", "value": "submit", "params": [{"key": "status", "operator": "equals", "value": "ok"}]},
    ]
    contains = [
        {"type": "url", "value": "/form"},
        {"type": "event", "value": "submit", "params": [{"key": "status", "operator": "contains", "value": "ok"}]},
    ]

    assert [r.count for r in funnel_counts(hits, equals, only_direct_entry=False)] == [3, 1]
    assert [r.count for r in funnel_counts(hits, contains, only_direct_entry=False)] == [3, 2]


def test_hits_of_unused_kinds_do_not_break_adjacency() -> None:
    hits = [
        pageview("s1", 0, "/a"),
        event("s1", 1, "scroll", "/a"),
        pageview("s1", 2, "/b"),
    ]
    results = funnel_counts(hits, _url_steps("/a", "/b"), only_direct_entry=True)
    assert [r.count for r in results] == [1, 1]


def _random_sessions(seed: int) -> list:
    rng = random.Random(seed)
    pages = ["/a", "/b", "/c", "/x"]
    hits = []
    for s in range(60):
        for i in range(rng.randint(1, 8)):
            hits.append(pageview(f"s{s}", i * 10, rng.choice(pages)))
    return hits


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_strict_counts_never_exceed_loose_counts(seed: int) -> None:
    hits = _random_sessions(seed)
    steps = _url_steps("/a", "/b", "/c", "/b")
    strict = [r.count for r in funnel_counts(hits, steps, only_direct_entry=True)]
    loose = [r.count for r in funnel_counts(hits, steps, only_direct_entry=False)]

    assert all(s <= l for s, l in zip(strict, loose))
    assert strict == sorted(strict, reverse=True)
    assert loose == sorted(loose, reverse=True)


@pytest.mark.parametrize("seed", [4, 5])
def test_strict_sessions_reaching_a_step_reached_the_previous_one(seed: int) -> None:
    hits = _random_sessions(seed)
    plan = compile_funnel(prepare_steps(_url_steps("/a", "/b", "/c")), "strict")
    for session_hits in group_sessions(hits).values():
        matched = match_session_stages(plan, session_hits)
        assert all(later.timestamp > earlier.timestamp for earlier, later in zip(matched, matched[1:]))
    assert evaluate_funnel(plan, hits) == sorted(evaluate_funnel(plan, hits), reverse=True)
