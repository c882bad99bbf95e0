"""
Cache Service
=============
In-memory, expiring storage for conversation state and generated reports.

Stores:
    - ExpiringStore   — key → value with a per-entry deadline
    - ReportCache     — generated reports, addressable by a short id
    - FollowupStore   — one-shot requests waiting on missing fields

Expiry Model:
    - Every entry expires ttl_seconds after it was last written or touched
    - The clock is injectable (tests pass a fake clock)
    - get() never returns an expired entry, even before a sweep ran
    - sweep() removes every expired entry; the host runs it periodically
    - Expiry is best effort: callers treat "not found" as "expired"

Stores are owned by the hosting process and passed by reference into the
handlers that use them. Nothing here is module-level state.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from bugbot.models.bug_report import CanonicalReport, ReportInput

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Clock = Callable[[], float]


def new_id() -> str:
    """Short random identifier for cache entries."""
    return uuid.uuid4().hex[:12]


class ExpiringStore(Generic[K, V]):
    """
    Key/value store whose entries expire after a period of inactivity.

    Usage:
        store = ExpiringStore(ttl_seconds=1800)
        store.set("k", value)
        store.get("k")     # value, or None once expired
        store.sweep()      # drop everything past its deadline
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key → (value, deadline)
        self._entries: Dict[K, Tuple[V, float]] = {}

    def now(self) -> float:
        return self._clock()

    def set(self, key: K, value: V) -> None:
        self._entries[key] = (value, self.now() + self.ttl_seconds)

    def get(self, key: K) -> Optional[V]:
        """Return the live value for ``key``; expired entries are removed and reported as None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self.now() >= deadline:
            del self._entries[key]
            logger.debug("Entry %r expired", key)
            return None
        return value

    def touch(self, key: K) -> bool:
        """Extend a live entry's deadline. Returns False if it is gone."""
        value = self.get(key)
        if value is None:
            return False
        self.set(key, value)
        return True

    def delete(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self.now()
        expired = [k for k, (_, deadline) in self._entries.items() if now >= deadline]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("%s swept %d expired entries", type(self).__name__, len(expired))
        return len(expired)

    def items(self) -> Iterator[Tuple[K, V]]:
        """Live entries only."""
        now = self.now()
        for key, (value, deadline) in list(self._entries.items()):
            if now < deadline:
                yield key, value

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return sum(1 for _ in self.items())


# ---------------------------------------------------------------------------
# Report Cache
# ---------------------------------------------------------------------------
class ReportCache(ExpiringStore[str, CanonicalReport]):
    """Generated reports, kept so a caller can fetch the full report later."""

    def store(self, report: CanonicalReport) -> str:
        report_id = new_id()
        self.set(report_id, report)
        return report_id


# ---------------------------------------------------------------------------
# Pending Follow-ups
# ---------------------------------------------------------------------------
@dataclass
class MissingField:
    id: str
    label: str


@dataclass
class PendingFollowup:
    """A one-shot request blocked on missing fields."""
    input: ReportInput
    missing_fields: List[MissingField] = field(default_factory=list)
    details: Optional[str] = None


class FollowupStore(ExpiringStore[str, PendingFollowup]):
    """Pending follow-ups, addressable by id until answered or expired."""

    def create(self, followup: PendingFollowup) -> str:
        followup_id = new_id()
        self.set(followup_id, followup)
        return followup_id


# ---------------------------------------------------------------------------
# Periodic Sweeper
# ---------------------------------------------------------------------------
async def sweep_forever(stores: Iterable[ExpiringStore], interval_seconds: float) -> None:
    """Sweep every store each ``interval_seconds`` until cancelled."""
    stores = list(stores)
    while True:
        await asyncio.sleep(interval_seconds)
        for store in stores:
            store.sweep()
