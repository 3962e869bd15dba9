from __future__ import annotations

import pytest

from umamibigquery import StepDefinition, ValidationError
from umamibigquery.core.steps import coerce_step, prepare_steps, require_url_steps


def test_prepare_steps_requires_two_steps() -> None:
    with pytest.raises(ValidationError, match="At least 2 steps"):
        prepare_steps([StepDefinition(kind="url", value="/a")])


def test_prepare_steps_drops_blank_values_before_counting() -> None:
    with pytest.raises(ValidationError):
        prepare_steps([{"type": "url", "value": "/a"}, {"type": "url", "value": "   "}])


def test_prepare_steps_accepts_legacy_urls() -> None:
    steps = prepare_steps(urls=["/a/", "/b?x=1"])
    assert [(s.kind, s.value) for s in steps] == [("url", "/a"), ("url", "/b")]


def test_prepare_steps_rejects_missing_input() -> None:
    with pytest.raises(ValidationError):
        prepare_steps(None)


def test_coerce_step_reads_wire_shape() -> None:
    step = coerce_step(
        {
            "type": "event",
            "value": "submit",
            "eventScope": "current-path",
            "params": [{"key": "status", "operator": "contains", "value": "ok"}],
        }
    )

    assert step == StepDefinition(
        kind="event",
        value="submit",
        event_scope="current-path",
        params=[{"key": "status", "operator": "contains", "value": "ok"}],
    )


def test_coerce_step_requires_value() -> None:
    with pytest.raises(ValidationError, match="requires a value"):
        coerce_step({"type": "url"})


def test_url_steps_lose_event_only_settings() -> None:
    steps = prepare_steps(
        [
            StepDefinition(kind="url", value="/a", event_scope="current-path"),
            StepDefinition(kind="url", value="/products/*"),
        ]
    )
    assert steps[0].event_scope == "anywhere"
    assert steps[1].value == "/products/*"


def test_require_url_steps_rejects_events() -> None:
    steps = prepare_steps([{"type": "url", "value": "/a"}, {"type": "event", "value": "submit"}])
    with pytest.raises(ValidationError, match="submit"):
        require_url_steps(steps)


def test_coerce_step_requires_type() -> None:
    with pytest.raises(ValidationError, match="requires a type"):
        coerce_step({"value": "/a"})
