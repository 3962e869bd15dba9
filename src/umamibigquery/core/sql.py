"""Helper utilities for constructing SQL fragments.

String escaping and literal formatting live here so the rest of the codebase
can focus on the semantics of a query. The same helpers render parameter
values when a query is shown back to the user with its parameters inlined, so
the displayed SQL stays deterministic.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

import pandas as pd
from google.cloud import bigquery

__all__ = [
    "RenderedQuery",
    "escape_literal",
    "format_literal",
    "format_parameter_value",
    "substitute_query_parameters",
]


def escape_literal(value: str) -> str:
    """Escape a string so it can safely be inserted as a SQL literal."""

    return value.replace("\\", "\\\\").replace("'", "\\'")


def format_literal(value: object) -> str:
    """Return ``value`` formatted as a quoted SQL literal."""

    return "'{}'".format(escape_literal(str(value)))


def format_parameter_value(value: object) -> str:
    """Return the SQL text standing in for a query parameter value."""

    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return format_literal(value.isoformat())
    if isinstance(value, (list, tuple)):
        return "[{}]".format(", ".join(format_parameter_value(item) for item in value))
    return format_literal(value)


def substitute_query_parameters(sql: str, params: Mapping[str, object]) -> str:
    """Inline ``@name`` parameters in ``sql`` for display purposes.

    Longer names are replaced first so ``@url1`` never clobbers ``@url10``.
    """

    for name in sorted(params, key=len, reverse=True):
        replacement = format_parameter_value(params[name])
        sql = re.sub(rf"@{re.escape(name)}\b", lambda _match: replacement, sql)
    return sql


def _query_parameter(name: str, value: object):
    if isinstance(value, (list, tuple)):
        return bigquery.ArrayQueryParameter(name, "STRING", [str(v) for v in value])
    if isinstance(value, bool):
        return bigquery.ScalarQueryParameter(name, "BOOL", value)
    if isinstance(value, int):
        return bigquery.ScalarQueryParameter(name, "INT64", value)
    if isinstance(value, (pd.Timestamp, datetime)):
        return bigquery.ScalarQueryParameter(name, "TIMESTAMP", pd.Timestamp(value).to_pydatetime())
    return bigquery.ScalarQueryParameter(name, "STRING", None if value is None else str(value))


@dataclass(frozen=True)
class RenderedQuery:
    """SQL text plus the named parameters it references."""

    sql: str
    params: dict[str, object] = field(default_factory=dict)

    def query_parameters(self) -> list:
        return [_query_parameter(name, value) for name, value in self.params.items()]

    def display_sql(self) -> str:
        return substitute_query_parameters(self.sql, self.params)
