"""Compilation of funnel step patterns into stage plans.

A :class:`FunnelPlan` is a chain of named stages, one per step, each holding
the predicates a hit must satisfy to qualify a session for that stage. Plans
are rendered to BigQuery SQL by :mod:`.funnel_sql` or evaluated directly over
hits by :func:`evaluate_funnel`. Both read the same predicates, so the two
agree on what a step means.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal, Union

from .hits import group_sessions
from .paths import matches_pattern
from .types import Hit, ParamOperator, StepDefinition, StepKind

__all__ = [
    "EntryMode",
    "FunnelPlan",
    "FunnelStage",
    "HitMatches",
    "OccursAfterPrevious",
    "OnPreviousPage",
    "ParamMatches",
    "PrecededByPrevious",
    "compile_funnel",
    "entry_mode",
    "evaluate_funnel",
]

EntryMode = Literal["strict", "loose"]

_HIT_KINDS = {"url": "pageview", "event": "event"}


def entry_mode(only_direct_entry: bool) -> EntryMode:
    return "strict" if only_direct_entry else "loose"


@dataclass(frozen=True)
class HitMatches:
    """The hit has the step's kind and its value matches the step pattern."""

    kind: StepKind
    pattern: str


@dataclass(frozen=True)
class ParamMatches:
    """An event parameter on the hit itself satisfies ``operator`` / ``value``."""

    key: str
    operator: ParamOperator
    value: str


@dataclass(frozen=True)
class OccursAfterPrevious:
    """The hit happens strictly after the session's previous-stage match."""


@dataclass(frozen=True)
class PrecededByPrevious:
    """The hit immediately before this one matches the previous step."""

    kind: StepKind
    pattern: str


@dataclass(frozen=True)
class OnPreviousPage:
    """The hit happens on the page where the previous stage matched."""


Predicate = Union[HitMatches, ParamMatches, OccursAfterPrevious, PrecededByPrevious, OnPreviousPage]


@dataclass(frozen=True)
class FunnelStage:
    index: int
    step: StepDefinition
    predicates: tuple[Predicate, ...]

    @property
    def name(self) -> str:
        return f"step{self.index + 1}"

    @property
    def previous_name(self) -> str | None:
        return f"step{self.index}" if self.index > 0 else None


@dataclass(frozen=True)
class FunnelPlan:
    stages: tuple[FunnelStage, ...]
    mode: EntryMode

    @property
    def hit_kinds(self) -> list[str]:
        """Kinds of hits the plan needs, in a stable order."""

        kinds = {_HIT_KINDS[stage.step.kind] for stage in self.stages}
        return [kind for kind in ("pageview", "event") if kind in kinds]


def _compile_stage(index: int, step: StepDefinition, previous: StepDefinition | None, mode: EntryMode) -> FunnelStage:
    predicates: list[Predicate] = [HitMatches(step.kind, step.value)]
    if previous is not None:
        predicates.append(OccursAfterPrevious())
        if mode == "strict":
            predicates.append(PrecededByPrevious(previous.kind, previous.value))
        if step.kind == "event" and step.event_scope == "current-path":
            predicates.append(OnPreviousPage())
    if step.kind == "event":
        predicates.extend(ParamMatches(p["key"], p["operator"], p["value"]) for p in step.params)
    return FunnelStage(index=index, step=step, predicates=tuple(predicates))


def compile_funnel(steps: Sequence[StepDefinition], mode: EntryMode) -> FunnelPlan:
    """Fold ``steps`` into a :class:`FunnelPlan`.

    ``steps`` is expected to have gone through :func:`.steps.prepare_steps`.
    """

    stages = tuple(
        _compile_stage(index, step, steps[index - 1] if index else None, mode)
        for index, step in enumerate(steps)
    )
    return FunnelPlan(stages=stages, mode=mode)


def _hit_matches(hit: Hit, kind: StepKind, pattern: str) -> bool:
    return hit.kind == _HIT_KINDS[kind] and matches_pattern(hit.path_or_name, pattern)


def _param_matches(hit: Hit, predicate: ParamMatches) -> bool:
    actual = hit.params.get(predicate.key)
    if actual is None:
        return False
    if predicate.operator == "contains":
        return predicate.value in actual
    return actual == predicate.value


def _qualifies(hits: Sequence[Hit], position: int, stage: FunnelStage, previous: Hit | None) -> bool:
    hit = hits[position]
    for predicate in stage.predicates:
        if isinstance(predicate, HitMatches):
            ok = _hit_matches(hit, predicate.kind, predicate.pattern)
        elif isinstance(predicate, ParamMatches):
            ok = _param_matches(hit, predicate)
        elif isinstance(predicate, OccursAfterPrevious):
            ok = previous is not None and hit.timestamp > previous.timestamp
        elif isinstance(predicate, PrecededByPrevious):
            ok = position > 0 and _hit_matches(hits[position - 1], predicate.kind, predicate.pattern)
        elif isinstance(predicate, OnPreviousPage):
            ok = previous is not None and hit.page_context == previous.page_context
        else:  # pragma: no cover - exhaustive over Predicate
            raise TypeError(f"unknown predicate {predicate!r}")
        if not ok:
            return False
    return True


def match_session_stages(plan: FunnelPlan, hits: Sequence[Hit]) -> list[Hit]:
    """Return the hit qualifying each stage for one session, stopping at the first miss.

    ``hits`` must already be in session order. The earliest qualifying hit wins
    for every stage.
    """

    matched: list[Hit] = []
    previous: Hit | None = None
    for stage in plan.stages:
        found = next(
            (hits[pos] for pos in range(len(hits)) if _qualifies(hits, pos, stage, previous)),
            None,
        )
        if found is None:
            break
        matched.append(found)
        previous = found
    return matched


def evaluate_funnel(plan: FunnelPlan, hits: Iterable[Hit]) -> list[int]:
    """Count the distinct sessions reaching each stage of ``plan``."""

    counts = [0] * len(plan.stages)
    wanted = set(plan.hit_kinds)
    for session_hits in group_sessions(h for h in hits if h.kind in wanted).values():
        for index in range(len(match_session_stages(plan, session_hits))):
            counts[index] += 1
    return counts
