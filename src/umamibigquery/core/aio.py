"""Asyncio front end for :class:`~.client.UmamiBigQuery`.

Each call runs in a worker thread so waiting on BigQuery never blocks the
event loop. If the awaiting task is cancelled, the BigQuery jobs started for
that call are cancelled as well and no further query is submitted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, TypeVar

from .client import UmamiBigQuery
from .jobs import ACTIVE_JOBS, JobTracker
from .types import FunnelResponse, JourneyResponse, TimingResponse

__all__ = ["AsyncUmamiBigQuery"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncUmamiBigQuery:
    def __init__(self, client: UmamiBigQuery) -> None:
        self._client = client

    async def _run(self, method: Callable[..., T], **kwargs: Any) -> T:
        tracker = JobTracker()
        token = ACTIVE_JOBS.set(tracker)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except asyncio.CancelledError:
            logger.info("Request cancelled, cancelling %d BigQuery job(s)", len(tracker.jobs))
            tracker.cancel()
            raise
        finally:
            ACTIVE_JOBS.reset(token)

    async def request_funnel(self, **kwargs: Any) -> FunnelResponse:
        return await self._run(self._client.request_funnel, **kwargs)

    async def request_funnel_timing(self, **kwargs: Any) -> TimingResponse:
        return await self._run(self._client.request_funnel_timing, **kwargs)

    async def request_journeys(self, **kwargs: Any) -> JourneyResponse:
        return await self._run(self._client.request_journeys, **kwargs)
