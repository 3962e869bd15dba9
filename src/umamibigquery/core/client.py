"""Primary client for issuing Umami funnel and journey queries against BigQuery."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import pandas as pd
from google.api_core import exceptions as gcore_exc
from google.auth import exceptions as auth_exc
from google.cloud import bigquery

from .audit import add_audit_logging
from .config import WarehouseConfig
from .cost import estimate_query_cost
from .credentials import create_bigquery_client
from .dates import DateLike, _parse_date_range
from .errors import ProviderUnavailableError, QueryExecutionError, ValidationError
from .funnel import compile_funnel, entry_mode
from .funnel_sql import render_funnel_sql
from .hits import render_pageview_hits_sql
from .jobs import ensure_not_cancelled, register_job
from .journey import build_journey_graph, prune_flows, render_journey_sql, validate_journey_request
from .paths import like_pattern, normalize_path
from .sql import RenderedQuery
from .steps import StepInput, prepare_steps, require_url_steps
from .timing import aggregate_timings, compute_session_timings
from .types import (
    Direction,
    FunnelResponse,
    FunnelStepResult,
    JourneyResponse,
    QueryStats,
    TimingResponse,
)

__all__ = ["FUNNEL_ANALYSIS", "JOURNEY_ANALYSIS", "UmamiBigQuery"]

logger = logging.getLogger(__name__)

FUNNEL_ANALYSIS = "Traktanalyse"
JOURNEY_ANALYSIS = "Sideflyt"
UNKNOWN_USER = "UNKNOWN"


def _require_website_id(website_id: str) -> None:
    if not website_id or not str(website_id).strip():
        raise ValidationError("website_id is required")


class UmamiBigQuery:
    """Umami-on-BigQuery client for funnel counts, funnel timing and journeys.

    All warehouse locations and limits come from ``config``. Pass ``client`` to
    reuse an existing :class:`google.cloud.bigquery.Client`; otherwise one is
    built from the environment.
    """

    def __init__(
        self,
        config: WarehouseConfig,
        *,
        client: bigquery.Client | None = None,
    ) -> None:
        self.config = config
        if client is None:
            try:
                client = create_bigquery_client(config)
            except (auth_exc.DefaultCredentialsError, ValueError, OSError) as exc:
                logger.error("Failed to initialize BigQuery client: %s", exc)
        self.client = client

    def _require_client(self) -> bigquery.Client:
        if self.client is None:
            raise ProviderUnavailableError("BigQuery client not initialized")
        return self.client

    def _query(self, query: RenderedQuery, analysis_type: str, user_ident: str) -> pd.DataFrame:
        """Execute ``query`` and return the resulting dataframe."""

        client = self._require_client()
        job_config = bigquery.QueryJobConfig(
            query_parameters=query.query_parameters(),
            maximum_bytes_billed=self.config.maximum_bytes_billed,
        )
        sql = add_audit_logging(job_config, query.sql, user_ident, analysis_type)
        ensure_not_cancelled()
        try:
            job = client.query(sql, job_config=job_config, location=self.config.location)
            register_job(job)
            ensure_not_cancelled()
            return job.result().to_dataframe()
        except gcore_exc.GoogleAPICallError as exc:
            logger.error("BigQuery %s query failed: %s", analysis_type, exc)
            raise QueryExecutionError(exc.message or str(exc)) from exc

    def _estimate_cost(self, query: RenderedQuery, analysis_type: str, user_ident: str) -> QueryStats | None:
        stats = estimate_query_cost(
            self._require_client(),
            query,
            self.config,
            user_ident=user_ident,
            analysis_type=analysis_type,
        )
        if stats is not None:
            logger.info(
                "[%s] Dry run - Processing %s GB, estimated cost: $%s",
                analysis_type,
                stats.total_bytes_processed_gb,
                stats.estimated_cost_usd,
            )
        return stats

    def request_funnel(
        self,
        *,
        website_id: str,
        start_date: DateLike,
        end_date: DateLike,
        steps: Sequence[StepInput] | None = None,
        urls: Sequence[str] | None = None,
        only_direct_entry: bool = True,
        user_ident: str = UNKNOWN_USER,
    ) -> FunnelResponse:
        """Return the number of sessions reaching each step of a funnel."""

        _require_website_id(website_id)
        prepared = prepare_steps(steps, urls)
        start, end = _parse_date_range(start_date, end_date, "UTC")
        self._require_client()

        plan = compile_funnel(prepared, entry_mode(only_direct_entry))
        query = render_funnel_sql(plan, self.config, website_id=website_id, start=start, end=end)

        stats = self._estimate_cost(query, FUNNEL_ANALYSIS, user_ident)
        df = self._query(query, FUNNEL_ANALYSIS, user_ident)
        if df.empty:
            return FunnelResponse(data=[], query_stats=stats)

        counts = {int(step): int(count or 0) for step, count in zip(df["step"], df["count"])}
        data = [
            FunnelStepResult(
                step_index=index,
                value=step.value,
                kind=step.kind,
                count=counts.get(index, 0),
                params=list(step.params),
            )
            for index, step in enumerate(prepared)
        ]
        return FunnelResponse(data=data, query_stats=stats, sql=query.display_sql())

    def request_funnel_timing(
        self,
        *,
        website_id: str,
        start_date: DateLike,
        end_date: DateLike,
        steps: Sequence[StepInput] | None = None,
        urls: Sequence[str] | None = None,
        only_direct_entry: bool = True,
        user_ident: str = UNKNOWN_USER,
    ) -> TimingResponse:
        """Return average and median time between consecutive URL steps."""

        _require_website_id(website_id)
        values = require_url_steps(prepare_steps(steps, urls))
        start, end = _parse_date_range(start_date, end_date, "UTC")
        self._require_client()

        anchor_is_wildcard = "*" in values[0]
        query = RenderedQuery(
            sql=render_pageview_hits_sql(self.config, anchor_is_wildcard=anchor_is_wildcard),
            params={
                "websiteId": website_id,
                "startDate": start,
                "endDate": end,
                "anchor": like_pattern(values[0]) if anchor_is_wildcard else values[0],
            },
        )

        stats = self._estimate_cost(query, FUNNEL_ANALYSIS, user_ident)
        hits = self._query(query, FUNNEL_ANALYSIS, user_ident)
        records = compute_session_timings(
            hits,
            values,
            strict=only_direct_entry,
            workers=self.config.timing_workers,
            chunk_size=self.config.timing_chunk_size,
        )
        return TimingResponse(
            data=aggregate_timings(records, values),
            query_stats=stats,
            sql=query.display_sql(),
        )

    def request_journeys(
        self,
        *,
        website_id: str,
        start_url: str,
        start_date: DateLike,
        end_date: DateLike,
        steps: int = 3,
        limit: int = 30,
        direction: Direction = "forward",
        user_ident: str = UNKNOWN_USER,
    ) -> JourneyResponse:
        """Return the navigation flow graph around ``start_url``."""

        _require_website_id(website_id)
        validate_journey_request(start_url, steps, limit, direction)
        start_page = normalize_path(start_url)
        start, end = _parse_date_range(start_date, end_date, "UTC")
        self._require_client()

        query = render_journey_sql(
            self.config,
            website_id=website_id,
            start_url=start_page,
            start=start,
            end=end,
            horizon=steps,
            limit=limit,
            direction=direction,
        )
        flows = self._query(query, JOURNEY_ANALYSIS, user_ident)
        nodes, links = build_journey_graph(prune_flows(flows, start_page, limit))
        stats = self._estimate_cost(query, JOURNEY_ANALYSIS, user_ident)
        return JourneyResponse(nodes=nodes, links=links, query_stats=stats)
