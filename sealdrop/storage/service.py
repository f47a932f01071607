"""Blob store: the only path to durable entry storage.

Handles creating, fetching and purging entries. Payloads are treated as
opaque text: they are sized, stored and returned verbatim, and never logged.

Examples:
    >>> from sealdrop.storage import BlobStore, StorageConfig
    >>> store = BlobStore(session_factory, StorageConfig())
    >>> created = await store.create("U2FsdGVkX1...", Origin(address="203.0.113.7"))
    >>> await store.fetch(created.id)
    'U2FsdGVkX1...'
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncGenerator, Callable

from sqlalchemy import delete
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sealdrop.errors import (
    InvalidId,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    QuotaExceeded,
    StorageUnavailable,
)
from sealdrop.models import UNKNOWN_ORIGIN, Entry, utcnow
from sealdrop.storage.config import StorageConfig
from sealdrop.storage.identifiers import is_valid_entry_id, new_entry_id, normalize_entry_id
from sealdrop.storage.origin import Origin
from sealdrop.storage.quota import QuotaTracker, QuotaUsage

logger = logging.getLogger(__name__)


@dataclass
class CreatedEntry:
    """Result of a successful create.

    Attributes:
        id: Assigned identifier
        size_bytes: UTF-8 byte length of the stored payload
        created_at: Creation time that anchors quota and retention
    """

    id: str
    size_bytes: int
    created_at: datetime


class BlobStore:
    """Create, fetch and expire entries.

    Attributes:
        session_factory: Factory for per-operation database sessions.
        config: Size, retention and quota limits.
        quota: Quota tracker consulted before every insert.
        clock: Callable returning the current aware UTC time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: StorageConfig,
        quota: QuotaTracker | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.clock = clock
        self.quota = quota or QuotaTracker(config, clock=clock)

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session, reporting connectivity failures as StorageUnavailable."""
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error(f"Storage unavailable: {e}")
            raise StorageUnavailable() from e

    async def create(self, payload: Any, origin: Origin | None = None) -> CreatedEntry:
        """Store a payload after size and quota checks.

        Args:
            payload: Client-encrypted text.
            origin: Resolved caller origin; ``None`` means unknown.

        Returns:
            CreatedEntry with the new id and byte size.

        Raises:
            InvalidInput: Payload missing, empty or not text.
            PayloadTooLarge: Payload above ``max_payload_bytes``.
            QuotaExceeded: Origin has no writes left in the window.
            StorageUnavailable: Database unreachable.
        """
        if not isinstance(payload, str) or not payload:
            raise InvalidInput("No payload provided")

        try:
            size_bytes = len(payload.encode("utf-8"))
        except UnicodeEncodeError:
            raise InvalidInput("Payload is not valid text") from None

        if size_bytes > self.config.max_payload_bytes:
            raise PayloadTooLarge(
                f"Payload is {size_bytes} bytes; the limit is {self.config.max_payload_bytes}"
            )

        origin = origin or Origin()
        address = origin.address.strip() or UNKNOWN_ORIGIN

        async with self._session() as session:
            decision = await self.quota.admit(session, address)
            if not decision.allowed:
                raise QuotaExceeded(
                    f"Quota exceeded: {decision.limit} entries per "
                    f"{self.config.quota_window_seconds // 60} minutes",
                    retry_after_seconds=decision.retry_after_seconds,
                )

            entry = Entry(
                id=new_entry_id(),
                payload=payload,
                size_bytes=size_bytes,
                origin_address=address,
                origin_meta=origin.meta_json(),
                created_at=self.clock(),
            )
            created = CreatedEntry(id=entry.id, size_bytes=size_bytes, created_at=entry.created_at)
            session.add(entry)
            await session.commit()

        logger.info(f"Entry created: {created.id} ({size_bytes} bytes) from {address}")
        return created

    async def fetch(self, entry_id: Any) -> str:
        """Return a live entry's payload verbatim.

        Raises:
            InvalidId: Identifier is not 24 hex characters.
            NotFound: No entry with that id, or it has expired.
            StorageUnavailable: Database unreachable.
        """
        if not is_valid_entry_id(entry_id):
            raise InvalidId()

        entry_id = normalize_entry_id(entry_id)

        async with self._session() as session:
            entry = await session.get(Entry, entry_id)

        if entry is None:
            logger.info(f"Entry not found: {entry_id}")
            raise NotFound()

        # Expired rows may linger until the next purge
        if entry.is_expired(self.clock(), self.config.retention_seconds):
            logger.info(f"Entry expired: {entry_id}")
            raise NotFound()

        return entry.payload

    async def usage(self, origin: str | None) -> QuotaUsage:
        """Report an origin's windowed usage. Never rejects."""
        address = (origin or "").strip() or UNKNOWN_ORIGIN
        async with self._session() as session:
            return await self.quota.usage(session, address)

    async def purge_expired(self) -> int:
        """Delete every entry past the retention window.

        Returns:
            Number of entries deleted.
        """
        cutoff = self.clock() - self.config.retention

        async with self._session() as session:
            result = await session.execute(
                delete(Entry).where(Entry.created_at < cutoff)
            )
            await session.commit()

        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Purged {deleted} expired entries")
        return deleted
