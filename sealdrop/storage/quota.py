"""Per-origin write quota over a sliding window.

Enforces: at most ``quota_max_entries`` entries per origin address whose
``created_at`` falls in ``[now - window, now]`` (5 per 2 hours by default).

Usage is recomputed from the entries table on every call. There is no
in-process counter, so restarts and multiple instances sharing one database
see the same numbers. Two concurrent writes from one origin can both pass
``admit`` before either commits; the quota is a soft limit.

Tests:
    - tests/unit/test_storage/test_quota.py
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sealdrop.models import Entry, ensure_utc, utcnow
from sealdrop.storage.config import StorageConfig

logger = logging.getLogger(__name__)


@dataclass
class QuotaUsage:
    """Windowed usage for one origin.

    Attributes:
        origin: Origin address the numbers belong to
        count: Entries created inside the window
        total_bytes: Sum of their ``size_bytes``
        oldest_created_at: Creation time of the oldest counted entry
    """

    origin: str
    count: int = 0
    total_bytes: int = 0
    oldest_created_at: datetime | None = None


@dataclass
class QuotaDecision:
    """Outcome of an admission check.

    Attributes:
        allowed: Whether the write may proceed
        count: Entries already counted in the window
        limit: Maximum entries allowed in the window
        retry_after_seconds: Seconds until the oldest counted entry leaves
            the window (only set when rejected)
    """

    allowed: bool
    count: int
    limit: int
    retry_after_seconds: int | None = None


class QuotaTracker:
    """Answers usage questions and admit/reject decisions per origin.

    Attributes:
        config: Storage policy holding the default window and limit.
        clock: Callable returning the current aware UTC time.
    """

    def __init__(
        self,
        config: StorageConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.clock = clock

    async def usage(
        self,
        session: AsyncSession,
        origin: str,
        window: timedelta | None = None,
    ) -> QuotaUsage:
        """Count entries and bytes an origin created inside the window.

        Args:
            session: Database session
            origin: Origin address
            window: Window length (defaults to the configured window)

        Returns:
            QuotaUsage, zeroed when the origin has no entries.
        """
        window = window if window is not None else self.config.quota_window
        now = self.clock()

        result = await session.execute(
            select(
                func.count(Entry.id),
                func.coalesce(func.sum(Entry.size_bytes), 0),
                func.min(Entry.created_at),
            ).where(
                Entry.origin_address == origin,
                Entry.created_at >= now - window,
                Entry.created_at <= now,
            )
        )
        count, total_bytes, oldest = result.one()

        return QuotaUsage(
            origin=origin,
            count=int(count or 0),
            total_bytes=int(total_bytes or 0),
            oldest_created_at=ensure_utc(oldest) if oldest is not None else None,
        )

    async def admit(
        self,
        session: AsyncSession,
        origin: str,
        window: timedelta | None = None,
        max_count: int | None = None,
    ) -> QuotaDecision:
        """Decide whether an origin may create one more entry.

        Args:
            session: Database session
            origin: Origin address
            window: Window length (defaults to the configured window)
            max_count: Entry limit (defaults to the configured limit)

        Returns:
            QuotaDecision, allowed iff the windowed count is below the limit.
        """
        window = window if window is not None else self.config.quota_window
        limit = max_count if max_count is not None else self.config.quota_max_entries

        usage = await self.usage(session, origin, window)

        if usage.count < limit:
            logger.debug(f"[QUOTA] {origin}: {usage.count}/{limit} in window, allowing")
            return QuotaDecision(allowed=True, count=usage.count, limit=limit)

        retry_after = None
        if usage.oldest_created_at is not None:
            remaining = (usage.oldest_created_at + window) - self.clock()
            # The window start is inclusive, so the oldest entry stops counting
            # one whole second after it reaches the window edge
            retry_after = max(1, math.floor(remaining.total_seconds()) + 1)

        logger.warning(
            f"[QUOTA] Quota exceeded for {origin}: {usage.count}/{limit}, "
            f"retry after {retry_after}s"
        )
        return QuotaDecision(
            allowed=False,
            count=usage.count,
            limit=limit,
            retry_after_seconds=retry_after,
        )
