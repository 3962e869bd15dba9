"""Exceptions raised by the Umami BigQuery client."""

from __future__ import annotations

__all__ = [
    "ProviderUnavailableError",
    "QueryExecutionError",
    "UmamiBigQueryError",
    "ValidationError",
]


class UmamiBigQueryError(Exception):
    """Base class for every error raised by this package.

    ``status_code`` mirrors the HTTP status a web layer should answer with.
    """

    status_code = 500


class ValidationError(UmamiBigQueryError, ValueError):
    """The request was malformed and no query was sent."""

    status_code = 400


class ProviderUnavailableError(UmamiBigQueryError, RuntimeError):
    """The BigQuery client has not been initialized."""


class QueryExecutionError(UmamiBigQueryError, RuntimeError):
    """BigQuery rejected or failed to run a query."""
