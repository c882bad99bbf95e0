"""
Session Store
=============
Expiring store of active sessions keyed by (user_id, thread_id).

Adds to ExpiringStore:
    - one asyncio.Lock per session, so messages of one session never interleave
    - thread ownership lookup, so other users' messages in a thread are ignored
    - last_activity bookkeeping on every touch

At most one session exists per (user, thread): starting a new one replaces
the old one.
"""
import asyncio
import logging
import time
from typing import Dict

from bugbot.core.config import SESSION_TTL_SECONDS
from bugbot.services.cache_service import Clock, ExpiringStore
from bugbot.state.session_state import Session, SessionKey

logger = logging.getLogger(__name__)


class SessionStore(ExpiringStore[SessionKey, Session]):

    def __init__(self, ttl_seconds: float = SESSION_TTL_SECONDS, clock: Clock = time.monotonic) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._locks: Dict[SessionKey, asyncio.Lock] = {}

    def put(self, session: Session) -> None:
        session.last_activity = self.now()
        self.set(session.key, session)

    def touch_session(self, session: Session) -> None:
        """Record activity on a live session."""
        session.last_activity = self.now()
        self.set(session.key, session)

    def is_current(self, session: Session) -> bool:
        """True while ``session`` is still the live session for its key."""
        return self.get(session.key) is session

    def lock_for(self, key: SessionKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def thread_owned_by_other(self, user_id: str, thread_id: str) -> bool:
        return any(
            key[1] == thread_id and key[0] != user_id
            for key, _ in self.items()
        )

    def delete(self, key: SessionKey) -> bool:
        self._locks.pop(key, None)
        return super().delete(key)

    def sweep(self) -> int:
        removed = super().sweep()
        live = {key for key, _ in self.items()}
        for key in [k for k in self._locks if k not in live]:
            del self._locks[key]
        return removed
