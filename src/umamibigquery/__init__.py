"""Public package API."""

from importlib import metadata

from .core import (
    AsyncUmamiBigQuery,
    Hit,
    ParamFilter,
    ProviderUnavailableError,
    QueryExecutionError,
    StepDefinition,
    UmamiBigQuery,
    UmamiBigQueryError,
    ValidationError,
    WarehouseConfig,
)
from .core.analysis import funnel_counts, funnel_timings, journey_graph
from .core.paths import normalize_path

__all__ = [
    "AsyncUmamiBigQuery",
    "Hit",
    "ParamFilter",
    "ProviderUnavailableError",
    "QueryExecutionError",
    "StepDefinition",
    "UmamiBigQuery",
    "UmamiBigQueryError",
    "ValidationError",
    "WarehouseConfig",
    "funnel_counts",
    "funnel_timings",
    "journey_graph",
    "normalize_path",
]

try:
    __version__ = metadata.version("umamibigquery")
except (
    metadata.PackageNotFoundError
):  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"
