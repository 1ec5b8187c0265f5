"""
Short-lived storage for pending OAuth states.

Entries are single use: ``take`` removes the entry whether or not it is still
valid, so a state value can never be replayed. Expired entries are inert and
are reclaimed by ``purge_expired`` or the background reclaimer task.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SECONDS = 600


@dataclass(frozen=True)
class _StateEntry:
    payload: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class StateRegistry:
    """Thread-safe in-memory state store with per-entry expiry.

    A single instance is meant to be shared for the lifetime of the process
    (see ``tokenkeeper.dependencies.get_state_registry``); tests and embedded
    callers may construct their own.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float = DEFAULT_STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _StateEntry] = {}
        self._lock = threading.Lock()
        self._reclaimer: Optional[asyncio.Task] = None

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl

    def __len__(self) -> int:
        return len(self._entries)

    def save(self, state: str, payload: str, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        entry = _StateEntry(payload=payload, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[state] = entry

    def take(self, state: str) -> Optional[str]:
        """Remove ``state`` and return its payload if it had not expired."""
        with self._lock:
            entry = self._entries.pop(state, None)
        if entry is None or entry.expired(self._clock()):
            return None
        return entry.payload

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            snapshot = list(self._entries.items())
        candidates = [(state, entry) for state, entry in snapshot if entry.expired(now)]
        removed = 0
        for state, entry in candidates:
            with self._lock:
                # Only drop the entry we saw; it may have been replaced since.
                if self._entries.get(state) is entry:
                    del self._entries[state]
                    removed += 1
        return removed

    async def run_reclaimer(self, interval_seconds: float = 60.0) -> None:
        """Purge expired states every ``interval_seconds`` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.purge_expired()
            if removed:
                logger.debug("Reclaimed %d expired OAuth states", removed)

    def start_reclaimer(self, interval_seconds: float = 60.0) -> asyncio.Task:
        """Start the background reclaimer on the running event loop."""
        if self._reclaimer is None or self._reclaimer.done():
            self._reclaimer = asyncio.create_task(self.run_reclaimer(interval_seconds))
        return self._reclaimer

    async def stop_reclaimer(self) -> None:
        task, self._reclaimer = self._reclaimer, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["DEFAULT_STATE_TTL_SECONDS", "StateRegistry"]
