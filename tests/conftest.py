from __future__ import annotations

from types import SimpleNamespace

import pandas as pd
import pytest

from umamibigquery import Hit, UmamiBigQuery, WarehouseConfig

BASE = pd.Timestamp("2024-03-01T10:00:00Z")


def pageview(session: str, seconds: float, path: str) -> Hit:
    return Hit(
        session_id=session,
        timestamp=BASE + pd.Timedelta(seconds=seconds),
        kind="pageview",
        path_or_name=path,
        page_context=path,
    )


def event(session: str, seconds: float, name: str, page: str, **params: str) -> Hit:
    return Hit(
        session_id=session,
        timestamp=BASE + pd.Timedelta(seconds=seconds),
        kind="event",
        path_or_name=name,
        page_context=page,
        params=params,
    )


class FakeJob:
    def __init__(self, df: pd.DataFrame, error: Exception | None = None) -> None:
        self._df = df
        self._error = error
        self.cancelled = False

    def result(self):
        if self._error is not None:
            raise self._error
        return self

    def to_dataframe(self) -> pd.DataFrame:
        return self._df.copy()

    def cancel(self) -> bool:
        self.cancelled = True
        return True


class FakeClient:
    """Stand-in for ``bigquery.Client`` recording every submitted job."""

    def __init__(
        self,
        df: pd.DataFrame | None = None,
        *,
        dry_run_bytes: int = 2 * 1024**3,
        dry_run_error: Exception | None = None,
        query_error: Exception | None = None,
        job=None,
    ) -> None:
        self.df = df if df is not None else pd.DataFrame()
        self.dry_run_bytes = dry_run_bytes
        self.dry_run_error = dry_run_error
        self.query_error = query_error
        self.job = job
        self.calls: list[tuple[str, object, str | None]] = []

    def query(self, sql: str, job_config=None, location=None):
        assert "SELECT" in sql and "FROM" in sql
        self.calls.append((sql, job_config, location))
        if job_config is not None and job_config.dry_run:
            if self.dry_run_error is not None:
                raise self.dry_run_error
            return SimpleNamespace(total_bytes_processed=self.dry_run_bytes)
        if self.job is not None:
            return self.job
        return FakeJob(self.df, self.query_error)

    @property
    def executed(self):
        return [call for call in self.calls if not call[1].dry_run]


@pytest.fixture
def config() -> WarehouseConfig:
    return WarehouseConfig(project_id="proj", maximum_bytes_billed=10 * 1024**3)


@pytest.fixture
def make_client(config: WarehouseConfig):
    def _make(df: pd.DataFrame | None = None, **kwargs) -> tuple[UmamiBigQuery, FakeClient]:
        fake = FakeClient(df, **kwargs)
        return UmamiBigQuery(config, client=fake), fake

    return _make
