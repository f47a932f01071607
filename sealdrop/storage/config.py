"""Storage policy model."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """Limits enforced by the blob store.

    Attributes:
        max_payload_bytes: Largest accepted payload, in UTF-8 bytes.
        retention_seconds: Age after which an entry is unreachable.
        quota_window_seconds: Trailing window for per-origin counting.
        quota_max_entries: Entries an origin may create inside one window.
    """

    max_payload_bytes: int = Field(default=1024 * 1024, ge=1, description="Payload size ceiling")
    retention_seconds: int = Field(default=7 * 24 * 60 * 60, ge=1, description="Entry time-to-live")
    quota_window_seconds: int = Field(default=2 * 60 * 60, ge=1, description="Quota window length")
    quota_max_entries: int = Field(default=5, ge=1, description="Entries per origin per window")

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self.retention_seconds)

    @property
    def quota_window(self) -> timedelta:
        return timedelta(seconds=self.quota_window_seconds)
