"""Audit metadata attached to every BigQuery job.

Jobs carry labels identifying who ran them and why, so they can be found in
the BigQuery job history and billing exports. The same information is
prepended to the SQL as comments.
"""

from __future__ import annotations

import re

import pandas as pd
from google.cloud import bigquery

__all__ = ["add_audit_logging", "label_value"]

_LABEL_INVALID = re.compile(r"[^a-z0-9_-]")
_LABEL_MAX_LENGTH = 63


def label_value(value: str) -> str:
    """Return ``value`` in the character set BigQuery accepts for labels."""

    return _LABEL_INVALID.sub("_", value.lower())[:_LABEL_MAX_LENGTH]


def add_audit_logging(
    job_config: bigquery.QueryJobConfig,
    sql: str,
    user_ident: str,
    analysis_type: str | None = None,
    *,
    now: pd.Timestamp | None = None,
) -> str:
    """Label ``job_config`` and return ``sql`` prefixed with audit comments."""

    dry_run = bool(job_config.dry_run)
    labels = dict(job_config.labels or {})
    labels.update(
        {
            "user_ident": label_value(user_ident),
            "user_type": "internal",
            "job_mode": "dry_run" if dry_run else "execution",
        }
    )
    if analysis_type:
        labels["analysis_type"] = label_value(analysis_type)
    job_config.labels = labels

    timestamp = (now or pd.Timestamp.now(tz="UTC")).isoformat()
    comments = [f"-- User: {user_ident}", f"-- Timestamp: {timestamp}"]
    if dry_run:
        comments.append("-- Mode: Dry Run")
    if analysis_type:
        comments.append(f"-- Analysis: {analysis_type}")
    return "\n".join([*comments, sql])
