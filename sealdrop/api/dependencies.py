"""FastAPI dependencies shared by the v1 routes.

Both dependencies take settings through ``Depends(get_settings)`` so tests
can swap configuration with ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request

from sealdrop.config import Settings, get_settings
from sealdrop.database import get_session_factory
from sealdrop.storage import BlobStore, resolve_origin_address


def get_blob_store(settings: Settings = Depends(get_settings)) -> BlobStore:
    """Build a blob store bound to the process-wide session factory."""
    return BlobStore(get_session_factory(), settings.storage_config())


def get_origin_address(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> str:
    """Resolve the caller's quota bucket from headers and peer address."""
    client_host = request.client.host if request.client else None
    return resolve_origin_address(
        request.headers.get("X-Forwarded-For"),
        client_host,
        trust_forwarded=settings.TRUST_FORWARDED_FOR,
    )
