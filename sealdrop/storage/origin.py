"""Origin resolution and descriptive client metadata.

The origin address is best-effort. Callers that cannot be identified all
land in the single ``"unknown"`` bucket and therefore share one quota.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sealdrop.models import UNKNOWN_ORIGIN

MAX_ADDRESS_LENGTH = 64


def resolve_origin_address(
    forwarded_for: str | None,
    client_host: str | None,
    trust_forwarded: bool = True,
) -> str:
    """Pick the address used as the caller's quota bucket.

    Args:
        forwarded_for: Raw X-Forwarded-For header value.
        client_host: Peer address from the network layer.
        trust_forwarded: Whether the forwarded header may be used.

    Returns:
        First forwarded entry, else the peer address, else ``"unknown"``.

    Examples:
        >>> resolve_origin_address("198.51.100.4, 10.0.0.1", "10.0.0.1")
        '198.51.100.4'
        >>> resolve_origin_address(None, None)
        'unknown'
    """
    if trust_forwarded and forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first[:MAX_ADDRESS_LENGTH]

    if client_host and client_host.strip():
        return client_host.strip()[:MAX_ADDRESS_LENGTH]

    return UNKNOWN_ORIGIN


class OriginMeta(BaseModel):
    """Informational client fields. Never used for any decision."""

    model_config = ConfigDict(extra="ignore")

    platform: str | None = Field(default=None, max_length=200)
    screen: str | dict[str, Any] | None = None
    browser: str | None = Field(default=None, max_length=500)


class Origin(BaseModel):
    """Submitting caller: quota address plus optional descriptive metadata."""

    address: str = UNKNOWN_ORIGIN
    meta: OriginMeta | None = None

    def meta_json(self) -> dict[str, Any] | None:
        """Serialise the descriptive fields for storage, dropping empties."""
        if self.meta is None:
            return None
        data = self.meta.model_dump(exclude_none=True)
        return data or None
