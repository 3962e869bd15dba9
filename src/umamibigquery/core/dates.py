"""Helpers for handling request time windows."""

from __future__ import annotations

from datetime import date, datetime
from typing import Tuple, Union

import pandas as pd

from .errors import ValidationError

DateLike = Union[str, date, datetime, pd.Timestamp]


def _to_timestamp(value: DateLike, tz: str, *, end_of_day: bool) -> pd.Timestamp:
    """Return a timezone aware timestamp for ``value``.

    Plain dates (and date-only ISO strings) cover the whole day, so the start of
    a window snaps to midnight and the end to the last microsecond of the day.
    """

    if isinstance(value, str):
        try:
            ts = pd.Timestamp(value)
        except ValueError as exc:
            raise ValidationError(f"invalid ISO-8601 timestamp: {value!r}") from exc
        date_only = len(value.strip()) == 10
    elif isinstance(value, datetime):
        ts = pd.Timestamp(value)
        date_only = False
    elif isinstance(value, date):
        ts = pd.Timestamp(value)
        date_only = True
    else:
        raise ValidationError(f"unsupported date value: {value!r}")

    if pd.isna(ts):
        raise ValidationError(f"invalid ISO-8601 timestamp: {value!r}")

    if ts.tzinfo is None:
        ts = ts.tz_localize(tz)

    if date_only:
        if end_of_day:
            return ts.replace(hour=23, minute=59, second=59, microsecond=999_999)
        return ts.replace(hour=0, minute=0, second=0, microsecond=0)
    return ts


def _parse_date_range(start: DateLike, end: DateLike, tz: str) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """Return timezone aware timestamps covering the inclusive range."""

    start_ts = _to_timestamp(start, tz, end_of_day=False)
    end_ts = _to_timestamp(end, tz, end_of_day=True)
    if end_ts < start_ts:
        raise ValidationError("end must be on or after start")
    return start_ts, end_ts
