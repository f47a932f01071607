"""Quota usage endpoint.

Endpoints:
    GET /api/v1/usage - Caller's entry count and bytes in the quota window
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from sealdrop.api.dependencies import get_blob_store, get_origin_address
from sealdrop.storage import BlobStore

router = APIRouter(prefix="/usage", tags=["usage"])


class UsageResponse(BaseModel):
    """Windowed usage for the calling origin."""

    model_config = ConfigDict(populate_by_name=True)

    count: int
    total_bytes: int = Field(alias="totalBytes")
    max_count: int = Field(alias="maxCount")
    window_seconds: int = Field(alias="windowSeconds")


@router.get("", response_model=UsageResponse)
async def get_usage(
    origin_address: str = Depends(get_origin_address),
    store: BlobStore = Depends(get_blob_store),
) -> UsageResponse:
    """Report how many entries and bytes the caller stored in the window."""
    usage = await store.usage(origin_address)
    return UsageResponse(
        count=usage.count,
        total_bytes=usage.total_bytes,
        max_count=store.config.quota_max_entries,
        window_seconds=store.config.quota_window_seconds,
    )
