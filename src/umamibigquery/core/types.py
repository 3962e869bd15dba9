"""Public data structures used by the Umami BigQuery client."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, List, Literal, Mapping, Optional, TypedDict

import pandas as pd

from .errors import ValidationError

__all__ = [
    "Direction",
    "EventScope",
    "FunnelResponse",
    "FunnelStepResult",
    "Hit",
    "HitKind",
    "JourneyEdge",
    "JourneyNode",
    "JourneyResponse",
    "ParamFilter",
    "ParamOperator",
    "QueryStats",
    "StepDefinition",
    "StepKind",
    "TimingResponse",
    "TimingResult",
]

StepKind = Literal["url", "event"]
EventScope = Literal["current-path", "anywhere"]
ParamOperator = Literal["equals", "contains"]
HitKind = Literal["pageview", "event"]
Direction = Literal["forward", "backward"]

_STEP_KINDS = ("url", "event")
_EVENT_SCOPES = ("current-path", "anywhere")
_PARAM_OPERATORS = ("equals", "contains")


class ParamFilter(TypedDict):
    """Typed mapping describing a filter on one event parameter."""

    key: str
    operator: ParamOperator
    value: str


@dataclass(frozen=True)
class StepDefinition:
    """Configuration describing a single step in a funnel."""

    kind: StepKind
    value: str
    event_scope: EventScope = "anywhere"
    params: List[ParamFilter] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.kind not in _STEP_KINDS:
            raise ValidationError(f"step kind must be one of {_STEP_KINDS}, got {self.kind!r}")
        if self.event_scope not in _EVENT_SCOPES:
            raise ValidationError(
                f"event_scope must be one of {_EVENT_SCOPES}, got {self.event_scope!r}"
            )
        if self.value.count("*") > 1:
            raise ValidationError("step value may contain at most one '*' wildcard")
        for param in self.params:
            if not param.get("key"):
                raise ValidationError("param filters require a key")
            if param.get("operator", "equals") not in _PARAM_OPERATORS:
                raise ValidationError(
                    f"param operator must be one of {_PARAM_OPERATORS}, got {param['operator']!r}"
                )

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.value


@dataclass(frozen=True)
class Hit:
    """One pageview or custom event recorded for a session.

    ``path_or_name`` holds the normalized URL path for pageviews and the raw
    event name for custom events. ``page_context`` is the normalized path the
    hit happened on, which for pageviews equals ``path_or_name``.
    """

    session_id: str
    timestamp: pd.Timestamp
    kind: HitKind
    path_or_name: str
    page_context: str
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryStats:
    """Dry-run resource estimate for a query."""

    total_bytes_processed: int
    total_bytes_processed_gb: str
    estimated_cost_usd: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalBytesProcessed": self.total_bytes_processed,
            "totalBytesProcessedGB": self.total_bytes_processed_gb,
            "estimatedCostUSD": self.estimated_cost_usd,
        }


@dataclass(frozen=True)
class FunnelStepResult:
    step_index: int
    value: str
    kind: StepKind
    count: int
    params: List[ParamFilter] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step_index,
            "url": self.value,
            "type": self.kind,
            "params": list(self.params),
            "count": self.count,
        }


@dataclass(frozen=True)
class TimingResult:
    """Average and median duration of one funnel transition.

    ``from_step == -1`` marks the synthetic first-to-last-step total.
    """

    from_step: int
    to_step: int
    avg_seconds: float
    median_seconds: float
    sample_count: int
    from_value: str = ""
    to_value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "fromStep": self.from_step,
            "toStep": self.to_step,
            "fromUrl": self.from_value,
            "toUrl": self.to_value,
            "avgSeconds": self.avg_seconds,
            "medianSeconds": self.median_seconds,
            "count": self.sample_count,
        }


@dataclass(frozen=True)
class JourneyNode:
    node_id: int
    step_index: int
    page_name: str

    @property
    def key(self) -> str:
        return f"{self.step_index}:{self.page_name}"

    def to_dict(self) -> dict[str, Any]:
        return {"nodeId": self.key, "name": self.page_name, "step": self.step_index}


@dataclass(frozen=True)
class JourneyEdge:
    source: int
    target: int
    weight: int

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "target": self.target, "value": self.weight}


@dataclass(frozen=True)
class FunnelResponse:
    data: List[FunnelStepResult]
    query_stats: Optional[QueryStats] = None
    sql: Optional[str] = None

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(row) for row in self.data])

    def to_dict(self) -> dict[str, Any]:
        return _response_dict(
            {"data": [row.to_dict() for row in self.data]}, self.query_stats, self.sql
        )


@dataclass(frozen=True)
class TimingResponse:
    data: List[TimingResult]
    query_stats: Optional[QueryStats] = None
    sql: Optional[str] = None

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(row) for row in self.data])

    def to_dict(self) -> dict[str, Any]:
        return _response_dict(
            {"data": [row.to_dict() for row in self.data]}, self.query_stats, self.sql
        )


@dataclass(frozen=True)
class JourneyResponse:
    nodes: List[JourneyNode]
    links: List[JourneyEdge]
    query_stats: Optional[QueryStats] = None

    def to_dict(self) -> dict[str, Any]:
        return _response_dict(
            {
                "nodes": [node.to_dict() for node in self.nodes],
                "links": [link.to_dict() for link in self.links],
            },
            self.query_stats,
            None,
        )


def _response_dict(
    body: dict[str, Any], query_stats: QueryStats | None, sql: str | None
) -> dict[str, Any]:
    body["queryStats"] = query_stats.to_dict() if query_stats is not None else None
    if sql is not None:
        body["sql"] = sql
    return body
