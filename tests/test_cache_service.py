"""
Cache Service Tests
===================
Expiring stores driven by a fake clock — no sleeping.

Covers:
    - get() hides expired entries before any sweep
    - touch() extends the deadline
    - sweep() removes and counts expired entries
    - ReportCache / FollowupStore id allocation
    - sweep_forever runs until cancelled
"""
import asyncio

from bugbot.models.bug_report import CanonicalReport, ReportInput
from bugbot.services.cache_service import (
    ExpiringStore,
    FollowupStore,
    MissingField,
    PendingFollowup,
    ReportCache,
    sweep_forever,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _report() -> CanonicalReport:
    return CanonicalReport(title="t", description="d", steps_to_reproduce=["s"], environment={})


class TestExpiringStore:

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        store = ExpiringStore(ttl_seconds=1800, clock=clock)
        store.set("k", "v")

        clock.advance(1799)
        assert store.get("k") == "v"
        clock.advance(1)
        assert store.get("k") is None
        assert "k" not in store

    def test_touch_extends_deadline(self):
        clock = FakeClock()
        store = ExpiringStore(ttl_seconds=60, clock=clock)
        store.set("k", "v")
        clock.advance(50)
        assert store.touch("k")
        clock.advance(50)
        assert store.get("k") == "v"

    def test_touch_missing_entry(self):
        assert not ExpiringStore(ttl_seconds=60).touch("nope")

    def test_sweep_counts_removed(self):
        clock = FakeClock()
        store = ExpiringStore(ttl_seconds=60, clock=clock)
        store.set("old", 1)
        clock.advance(30)
        store.set("new", 2)
        clock.advance(31)

        assert store.sweep() == 1
        assert len(store) == 1
        assert list(store.items()) == [("new", 2)]

    def test_delete_and_clear(self):
        store = ExpiringStore(ttl_seconds=60)
        store.set("a", 1)
        store.set("b", 2)
        assert store.delete("a")
        assert not store.delete("a")
        store.clear()
        assert len(store) == 0


class TestTypedStores:

    def test_report_cache_allocates_ids(self):
        cache = ReportCache(ttl_seconds=60)
        first = cache.store(_report())
        second = cache.store(_report())
        assert first != second
        assert len(first) == 12
        assert cache.get(first).title == "t"

    def test_followup_store(self):
        store = FollowupStore(ttl_seconds=60)
        followup = PendingFollowup(
            input=ReportInput(raw_summary="Crash"),
            missing_fields=[MissingField(id="os", label="operating system and version")],
            details="Which OS?",
        )
        followup_id = store.create(followup)
        assert store.get(followup_id) is followup


def test_sweep_forever_sweeps_until_cancelled():
    clock = FakeClock()
    store = ExpiringStore(ttl_seconds=10, clock=clock)
    store.set("k", "v")
    clock.advance(11)

    async def go():
        task = asyncio.create_task(sweep_forever([store], interval_seconds=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(go())
    # Swept, not merely hidden
    assert store._entries == {}
