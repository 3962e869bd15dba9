"""Tracking of the BigQuery jobs started on behalf of one request.

When a request is abandoned, its tracker is marked cancelled. Jobs already
submitted are cancelled at that moment, no new query is submitted afterwards,
and a job that was in flight while the flag was set is cancelled as soon as
it is registered.
"""

from __future__ import annotations

import logging
import threading
from contextvars import ContextVar

from google.api_core import exceptions as gcore_exc

from .errors import QueryExecutionError

__all__ = ["ACTIVE_JOBS", "JobTracker", "ensure_not_cancelled", "register_job"]

logger = logging.getLogger(__name__)


def _cancel_job(job) -> None:
    try:
        job.cancel()
    except gcore_exc.GoogleAPICallError as exc:
        logger.warning("Failed to cancel BigQuery job %s: %s", getattr(job, "job_id", "?"), exc)


class JobTracker:
    def __init__(self) -> None:
        self._jobs: list = []
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def jobs(self) -> list:
        with self._lock:
            return list(self._jobs)

    def register(self, job) -> None:
        with self._lock:
            self._jobs.append(job)
            cancelled = self._cancelled.is_set()
        if cancelled:
            _cancel_job(job)

    def cancel(self) -> None:
        with self._lock:
            self._cancelled.set()
            jobs = list(self._jobs)
        for job in jobs:
            _cancel_job(job)


# Tracker of the request running in the current context, if any.
ACTIVE_JOBS: ContextVar[JobTracker | None] = ContextVar("umamibigquery_active_jobs", default=None)


def ensure_not_cancelled() -> None:
    """Raise if the current request was cancelled, before a query is submitted."""

    tracker = ACTIVE_JOBS.get()
    if tracker is not None and tracker.cancelled:
        raise QueryExecutionError("Request cancelled")


def register_job(job) -> None:
    tracker = ACTIVE_JOBS.get()
    if tracker is not None:
        tracker.register(job)
