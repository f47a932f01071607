"""Entry API endpoints.

Endpoints:
    POST /api/v1/entries - Store an encrypted payload
    GET /api/v1/entries/{id} - Fetch a payload by ID

Examples:
    >>> POST /api/v1/entries
    >>> {"payload": "U2FsdGVkX1...", "originMeta": {"platform": "MacIntel"}}
    >>>
    >>> # Response (201)
    >>> {"id": "9f3b1c2d4e5f60718293a4b5", "sizeBytes": 12}

Tests:
    - tests/integration/test_api_entries.py
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from sealdrop.api.dependencies import get_blob_store, get_origin_address
from sealdrop.storage import BlobStore, Origin, OriginMeta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/entries", tags=["entries"])


# Request/Response Models


class CreateEntryRequest(BaseModel):
    """Request to store a payload.

    ``payload`` is left untyped here so that missing or non-text payloads
    reach the store and come back as InvalidInput. ``encrypted`` is accepted
    as an alias for older clients that post ``{"encrypted": ...}``.

    Attributes:
        payload: Client-encrypted text
        origin_meta: Optional descriptive client fields
    """

    payload: Any = Field(
        default=None,
        validation_alias=AliasChoices("payload", "encrypted"),
        description="Client-encrypted payload (opaque text)",
    )
    origin_meta: OriginMeta | None = Field(
        default=None,
        validation_alias=AliasChoices("originMeta", "origin_meta"),
        description="Informational client metadata",
    )


class CreateEntryResponse(BaseModel):
    """Response after storing a payload."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    size_bytes: int = Field(alias="sizeBytes")


class FetchEntryResponse(BaseModel):
    """Response containing a stored payload."""

    payload: str


# Endpoints


@router.post(
    "",
    response_model=CreateEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_entry(
    request: CreateEntryRequest,
    origin_address: str = Depends(get_origin_address),
    store: BlobStore = Depends(get_blob_store),
) -> CreateEntryResponse:
    """Store a payload for the retention period.

    Raises:
        InvalidInput: 400 if the payload is missing or not text
        PayloadTooLarge: 400 if the payload exceeds the size limit
        QuotaExceeded: 429 if the caller's window quota is used up
    """
    origin = Origin(address=origin_address, meta=request.origin_meta)
    created = await store.create(request.payload, origin)
    return CreateEntryResponse(id=created.id, size_bytes=created.size_bytes)


@router.get("/{entry_id}", response_model=FetchEntryResponse)
async def fetch_entry(
    entry_id: str,
    store: BlobStore = Depends(get_blob_store),
) -> FetchEntryResponse:
    """Fetch a live payload verbatim.

    Raises:
        InvalidId: 400 if the ID is not 24 hex characters
        NotFound: 404 if no live entry has this ID
    """
    payload = await store.fetch(entry_id)
    return FetchEntryResponse(payload=payload)
