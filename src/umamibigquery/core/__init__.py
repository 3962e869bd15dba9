from .aio import AsyncUmamiBigQuery
from .client import UmamiBigQuery
from .config import WarehouseConfig
from .errors import ProviderUnavailableError, QueryExecutionError, UmamiBigQueryError, ValidationError
from .types import Hit, ParamFilter, StepDefinition

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
]
