"""Validation of funnel step patterns."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any, Union

from .errors import ValidationError
from .paths import normalize_path
from .types import ParamFilter, StepDefinition

StepInput = Union[StepDefinition, Mapping[str, Any]]

MIN_STEPS = 2


def coerce_step(step: StepInput) -> StepDefinition:
    """Return ``step`` as a :class:`StepDefinition`.

    Mappings use the wire shape ``{"type", "value", "eventScope", "params"}``.
    """

    if isinstance(step, StepDefinition):
        return step
    if not isinstance(step, Mapping):
        raise ValidationError(f"invalid step: {step!r}")
    if "type" not in step:
        raise ValidationError("every step requires a type")
    if "value" not in step:
        raise ValidationError("every step requires a value")

    params: list[ParamFilter] = [
        {
            "key": str(p.get("key", "")),
            "operator": p.get("operator", "equals"),
            "value": str(p.get("value", "")),
        }
        for p in (step.get("params") or [])
    ]
    return StepDefinition(
        kind=step["type"],
        value=str(step["value"] or ""),
        event_scope=step.get("eventScope") or "anywhere",
        params=params,
    )


def _clean_step(step: StepDefinition) -> StepDefinition | None:
    value = step.value.strip()
    if not value:
        return None
    if step.kind == "url" and "*" not in value:
        value = normalize_path(value)
    # Only event steps carry a scope and parameter filters.
    if step.kind == "url":
        return replace(step, value=value, event_scope="anywhere", params=[])
    return replace(step, value=value, params=[p for p in step.params if p["key"].strip()])


def prepare_steps(
    steps: Sequence[StepInput] | None = None,
    urls: Sequence[str] | None = None,
) -> list[StepDefinition]:
    """Return the usable steps of a pattern, rejecting patterns that are too short.

    ``urls`` is accepted as shorthand for a pattern made only of URL steps and
    is used when ``steps`` is not given.
    """

    if steps is None and urls is not None:
        steps = [StepDefinition(kind="url", value=str(url)) for url in urls]
    if not steps or isinstance(steps, (str, bytes)):
        raise ValidationError(f"At least {MIN_STEPS} steps are required for a funnel")

    cleaned = [c for c in (_clean_step(coerce_step(s)) for s in steps) if c is not None]
    if len(cleaned) < MIN_STEPS:
        raise ValidationError(f"At least {MIN_STEPS} steps are required for a funnel")
    return cleaned


def require_url_steps(steps: Sequence[StepDefinition]) -> list[str]:
    """Return the values of ``steps``, which must all be URL steps."""

    event_steps = [s.value for s in steps if s.kind != "url"]
    if event_steps:
        raise ValidationError(
            "funnel timing only supports URL steps, got event steps: " + ", ".join(event_steps)
        )
    return [s.value for s in steps]
