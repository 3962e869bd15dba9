"""Dry-run cost estimation."""

from __future__ import annotations

import logging

from google.cloud import bigquery

from .audit import add_audit_logging
from .config import WarehouseConfig
from .jobs import ensure_not_cancelled
from .sql import RenderedQuery
from .types import QueryStats

__all__ = ["estimate_query_cost", "query_stats_from_bytes"]

logger = logging.getLogger(__name__)

_GIB = 1024**3
_TIB = 1024**4


def query_stats_from_bytes(total_bytes: int, cost_per_tib_usd: float) -> QueryStats:
    return QueryStats(
        total_bytes_processed=total_bytes,
        total_bytes_processed_gb=f"{total_bytes / _GIB:.2f}",
        estimated_cost_usd=f"{total_bytes / _TIB * cost_per_tib_usd:.3f}",
    )


def estimate_query_cost(
    client: bigquery.Client,
    query: RenderedQuery,
    config: WarehouseConfig,
    *,
    user_ident: str,
    analysis_type: str | None = None,
) -> QueryStats | None:
    """Return the dry-run estimate for ``query``, or ``None`` if the dry run fails."""

    job_config = bigquery.QueryJobConfig(
        dry_run=True,
        use_query_cache=False,
        query_parameters=query.query_parameters(),
    )
    sql = add_audit_logging(job_config, query.sql, user_ident, analysis_type)
    ensure_not_cancelled()
    try:
        job = client.query(sql, job_config=job_config, location=config.location)
        total_bytes = int(job.total_bytes_processed or 0)
    except Exception as exc:
        logger.warning("[%s] Dry run failed: %s", analysis_type or "DryRun", exc)
        return None
    return query_stats_from_bytes(total_bytes, config.cost_per_tib_usd)
