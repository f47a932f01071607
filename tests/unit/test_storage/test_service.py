"""Tests for sealdrop.storage.service module.

Covers:
    - create: validation order, byte sizing, quota rejection, no partial writes
    - fetch: id syntax, not-found, retention boundary
    - usage reporting
    - purge_expired
    - storage outages
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sealdrop.errors import (
    InvalidId,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    QuotaExceeded,
    StorageUnavailable,
)
from sealdrop.models import Entry
from sealdrop.storage import BlobStore, Origin, OriginMeta, StorageConfig
from sealdrop.storage.identifiers import is_valid_entry_id

MiB = 1024 * 1024


async def _count_entries(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(Entry.id)))
        return result.scalar_one()


def _origin(address: str = "203.0.113.7") -> Origin:
    return Origin(address=address)


@pytest.mark.fast
class TestCreate:
    """Tests for BlobStore.create()."""

    @pytest.mark.asyncio
    async def test_returns_id_and_size(self, store):
        created = await store.create("0123456789", _origin())
        assert is_valid_entry_id(created.id)
        assert created.size_bytes == 10

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, session_factory, clock):
        store = BlobStore(session_factory, StorageConfig(quota_max_entries=50), clock=clock)
        ids = {(await store.create(f"payload-{i}", _origin())).id for i in range(20)}
        assert len(ids) == 20

    @pytest.mark.asyncio
    async def test_size_counts_utf8_bytes(self, store):
        created = await store.create("héllo", _origin())
        assert created.size_bytes == 6

        created = await store.create("🔒", _origin())
        assert created.size_bytes == 4

    @pytest.mark.asyncio
    async def test_created_at_comes_from_clock(self, store, clock):
        created = await store.create("abc", _origin())
        assert created.created_at == clock.now

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, "", 42, ["a"], {"ciphertext": "x"}])
    async def test_rejects_missing_or_non_text_payload(self, store, session_factory, payload):
        with pytest.raises(InvalidInput):
            await store.create(payload, _origin())
        assert await _count_entries(session_factory) == 0

    @pytest.mark.asyncio
    async def test_rejects_unencodable_text(self, store):
        with pytest.raises(InvalidInput):
            await store.create("\ud800", _origin())

    @pytest.mark.asyncio
    async def test_accepts_payload_at_limit(self, store):
        created = await store.create("a" * MiB, _origin())
        assert created.size_bytes == MiB

    @pytest.mark.asyncio
    async def test_rejects_payload_over_limit(self, store, session_factory):
        with pytest.raises(PayloadTooLarge):
            await store.create("a" * (2 * MiB), _origin())
        assert await _count_entries(session_factory) == 0

    @pytest.mark.asyncio
    async def test_limit_applies_to_bytes_not_characters(self, session_factory, clock):
        store = BlobStore(session_factory, StorageConfig(max_payload_bytes=10), clock=clock)
        # 6 characters, 12 bytes
        with pytest.raises(PayloadTooLarge):
            await store.create("é" * 6, _origin())

    @pytest.mark.asyncio
    async def test_size_checked_before_quota(self, store):
        for i in range(5):
            await store.create(f"p{i}", _origin())
        with pytest.raises(PayloadTooLarge):
            await store.create("a" * (2 * MiB), _origin())

    @pytest.mark.asyncio
    async def test_origin_meta_is_stored(self, store, session_factory):
        origin = Origin(address="198.51.100.2", meta=OriginMeta(platform="MacIntel", screen="1440x900"))
        created = await store.create("payload", origin)

        async with session_factory() as session:
            entry = await session.get(Entry, created.id)
        assert entry.origin_address == "198.51.100.2"
        assert entry.origin_meta == {"platform": "MacIntel", "screen": "1440x900"}

    @pytest.mark.asyncio
    async def test_missing_origin_uses_unknown_bucket(self, store, session_factory):
        created = await store.create("payload", None)

        async with session_factory() as session:
            entry = await session.get(Entry, created.id)
        assert entry.origin_address == "unknown"
        assert entry.origin_meta is None


@pytest.mark.fast
class TestQuota:
    """Quota enforcement through BlobStore.create()."""

    @pytest.mark.asyncio
    async def test_sixth_create_in_window_is_rejected(self, store, session_factory):
        for i in range(5):
            await store.create(f"payload-{i}", _origin())

        with pytest.raises(QuotaExceeded) as exc_info:
            await store.create("payload-6", _origin())

        assert exc_info.value.retry_after_seconds == 2 * 60 * 60 + 1
        assert await _count_entries(session_factory) == 5

    @pytest.mark.asyncio
    async def test_admitted_again_once_oldest_leaves_window(self, store, clock):
        await store.create("first", _origin())
        clock.advance(minutes=30)
        for i in range(4):
            await store.create(f"later-{i}", _origin())

        with pytest.raises(QuotaExceeded) as exc_info:
            await store.create("blocked", _origin())
        assert exc_info.value.retry_after_seconds == 90 * 60 + 1

        # First entry is exactly at the window edge: still counted
        clock.advance(minutes=90)
        with pytest.raises(QuotaExceeded):
            await store.create("still-blocked", _origin())

        clock.advance(seconds=1)
        created = await store.create("admitted", _origin())
        assert created.size_bytes == 8

    @pytest.mark.asyncio
    async def test_retry_after_is_enough_to_be_admitted(self, store, clock):
        for i in range(5):
            await store.create(f"payload-{i}", _origin())
            clock.advance(minutes=1)

        with pytest.raises(QuotaExceeded) as exc_info:
            await store.create("blocked", _origin())

        clock.advance(seconds=exc_info.value.retry_after_seconds)
        created = await store.create("x", _origin())
        assert created.size_bytes == 1

    @pytest.mark.asyncio
    async def test_origins_have_separate_buckets(self, store):
        for i in range(5):
            await store.create(f"a-{i}", _origin("192.0.2.1"))

        created = await store.create("b-0", _origin("192.0.2.2"))
        assert created.id

    @pytest.mark.asyncio
    async def test_unidentified_callers_share_one_bucket(self, store):
        # Known coarsening: every unresolvable caller counts against "unknown"
        for i in range(3):
            await store.create(f"x-{i}", None)
        for i in range(2):
            await store.create(f"y-{i}", Origin(address="   "))

        with pytest.raises(QuotaExceeded):
            await store.create("z", Origin())

    @pytest.mark.asyncio
    async def test_configured_limit_is_used(self, session_factory, clock):
        store = BlobStore(
            session_factory,
            StorageConfig(quota_max_entries=2, quota_window_seconds=60),
            clock=clock,
        )
        await store.create("1", _origin())
        await store.create("2", _origin())
        with pytest.raises(QuotaExceeded):
            await store.create("3", _origin())

        clock.advance(seconds=61)
        await store.create("3", _origin())


@pytest.mark.fast
class TestFetch:
    """Tests for BlobStore.fetch()."""

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        payload = "U2FsdGVkX1+vupppZksvRf5pq5g5XjFRlipRkwB0K1Y="
        created = await store.create(payload, _origin())
        assert await store.fetch(created.id) == payload

    @pytest.mark.asyncio
    async def test_round_trip_multibyte(self, store):
        payload = "données chiffrées 🔐\n\ttab"
        created = await store.create(payload, _origin())
        assert await store.fetch(created.id) == payload

    @pytest.mark.asyncio
    async def test_fetch_is_repeatable(self, store):
        created = await store.create("same", _origin())
        assert await store.fetch(created.id) == "same"
        assert await store.fetch(created.id) == "same"

    @pytest.mark.asyncio
    async def test_fetch_accepts_uppercase_id(self, store):
        created = await store.create("case", _origin())
        assert await store.fetch(created.id.upper()) == "case"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "entry_id",
        ["", "abc", "g" * 24, "0" * 23, "0" * 25, "../../etc/passwd", None, 123],
    )
    async def test_malformed_id_is_invalid_not_missing(self, store, entry_id):
        with pytest.raises(InvalidId):
            await store.fetch(entry_id)

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, store):
        with pytest.raises(NotFound):
            await store.fetch("0123456789abcdef01234567")

    @pytest.mark.asyncio
    async def test_retention_boundary(self, store, clock):
        created = await store.create("short-lived", _origin())

        clock.advance(days=7, seconds=-1)
        assert await store.fetch(created.id) == "short-lived"

        clock.advance(seconds=1)
        assert await store.fetch(created.id) == "short-lived"

        clock.advance(seconds=1)
        with pytest.raises(NotFound):
            await store.fetch(created.id)

    @pytest.mark.asyncio
    async def test_expired_entry_stays_unreachable(self, store, clock):
        created = await store.create("gone", _origin())
        clock.advance(days=8)
        with pytest.raises(NotFound):
            await store.fetch(created.id)
        clock.advance(days=30)
        with pytest.raises(NotFound):
            await store.fetch(created.id)


@pytest.mark.fast
class TestUsage:
    """Tests for BlobStore.usage()."""

    @pytest.mark.asyncio
    async def test_reports_count_and_bytes(self, store):
        sizes = []
        for payload in ["a", "bb", "ccc", "é"]:
            sizes.append((await store.create(payload, _origin())).size_bytes)

        usage = await store.usage("203.0.113.7")
        assert usage.count == 4
        assert usage.total_bytes == sum(sizes) == 8

    @pytest.mark.asyncio
    async def test_zero_for_new_origin(self, store):
        usage = await store.usage("192.0.2.99")
        assert usage.count == 0
        assert usage.total_bytes == 0
        assert usage.oldest_created_at is None

    @pytest.mark.asyncio
    async def test_usage_does_not_consume_quota(self, store):
        for _ in range(10):
            await store.usage("203.0.113.7")
        for i in range(5):
            await store.create(f"p{i}", _origin())

    @pytest.mark.asyncio
    async def test_window_slides(self, store, clock):
        await store.create("old", _origin())
        clock.advance(hours=3)
        await store.create("new", _origin())

        usage = await store.usage("203.0.113.7")
        assert usage.count == 1
        assert usage.total_bytes == 3

    @pytest.mark.asyncio
    async def test_blank_origin_reports_unknown_bucket(self, store):
        await store.create("anon", None)
        usage = await store.usage(None)
        assert usage.origin == "unknown"
        assert usage.count == 1


@pytest.mark.fast
class TestPurgeExpired:
    """Tests for BlobStore.purge_expired()."""

    @pytest.mark.asyncio
    async def test_removes_only_expired(self, store, clock, session_factory):
        old = await store.create("old", _origin())
        clock.advance(days=3)
        fresh = await store.create("fresh", _origin())
        clock.advance(days=4, seconds=1)

        assert await store.purge_expired() == 1
        assert await _count_entries(session_factory) == 1
        assert await store.fetch(fresh.id) == "fresh"
        with pytest.raises(NotFound):
            await store.fetch(old.id)

    @pytest.mark.asyncio
    async def test_nothing_to_purge(self, store):
        await store.create("live", _origin())
        assert await store.purge_expired() == 0

    @pytest.mark.asyncio
    async def test_purged_id_is_not_found(self, store, clock):
        created = await store.create("x", _origin())
        clock.advance(days=7, seconds=1)
        await store.purge_expired()
        with pytest.raises(NotFound):
            await store.fetch(created.id)


@pytest.mark.fast
class TestStorageUnavailable:
    """Database outages surface as StorageUnavailable."""

    @pytest.fixture
    def broken_store(self, tmp_path, clock):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return BlobStore(factory, StorageConfig(), clock=clock)

    @pytest.mark.asyncio
    async def test_create(self, broken_store):
        with pytest.raises(StorageUnavailable):
            await broken_store.create("payload", _origin())

    @pytest.mark.asyncio
    async def test_fetch(self, broken_store):
        with pytest.raises(StorageUnavailable):
            await broken_store.fetch("0123456789abcdef01234567")

    @pytest.mark.asyncio
    async def test_validation_still_runs_first(self, broken_store):
        with pytest.raises(InvalidId):
            await broken_store.fetch("nope")
        with pytest.raises(InvalidInput):
            await broken_store.create("", _origin())
