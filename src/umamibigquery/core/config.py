"""Warehouse configuration passed to the client at construction time."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

__all__ = ["WarehouseConfig"]


@dataclass(frozen=True)
class WarehouseConfig:
    """Where the Umami export lives and how queries against it are bounded."""

    project_id: str
    dataset_id: str = "umami"
    events_table: str = "public_website_event"
    event_data_table: str = "umami_views.event_data"
    location: str = "europe-north1"
    maximum_bytes_billed: Optional[int] = None
    cost_per_tib_usd: float = 6.25
    timing_workers: int = 4
    timing_chunk_size: int = 5000

    def __post_init__(self) -> None:
        if not self.project_id:
            raise ValueError("project_id is required")
        if self.maximum_bytes_billed is not None and self.maximum_bytes_billed <= 0:
            raise ValueError("maximum_bytes_billed must be positive")
        if self.timing_workers < 1:
            raise ValueError("timing_workers must be at least 1")
        if self.timing_chunk_size < 1:
            raise ValueError("timing_chunk_size must be at least 1")

    @property
    def events_table_fqn(self) -> str:
        return f"{self.project_id}.{self.dataset_id}.{self.events_table}"

    @property
    def event_data_table_fqn(self) -> str:
        return f"{self.project_id}.{self.event_data_table}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "WarehouseConfig":
        """Build a config from ``GCP_PROJECT_ID`` and friends."""

        env = os.environ if environ is None else environ
        project_id = env.get("GCP_PROJECT_ID", "")
        if not project_id:
            raise ValueError("GCP_PROJECT_ID is not set")

        max_bytes = env.get("MAX_BYTES_BILLED")
        return cls(
            project_id=project_id,
            dataset_id=env.get("UMAMI_DATASET", cls.dataset_id),
            location=env.get("BIGQUERY_LOCATION", cls.location),
            maximum_bytes_billed=int(max_bytes) if max_bytes else None,
        )
