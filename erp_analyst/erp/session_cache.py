"""TTL cache of authenticated ERP sessions.

One entry per credential fingerprint. The cache only holds the opaque
numeric uid returned by authentication, so concurrent overwrites and
invalidations can never leave it in a half-updated state.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class _Entry:
    uid: int
    expires_at: float


class SessionCache:
    """Thread-safe session cache with a fixed time-to-live.

    Attributes:
        ttl_seconds: Lifetime of an entry after it is stored.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            ttl_seconds: Entry lifetime in seconds. Must be positive.
            clock: Monotonic time source, injectable for tests.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> int | None:
        """Return the cached uid, evicting it first if it has expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                logger.debug("ERP session expired for %s", key[:12])
                return None
            return entry.uid

    def set(self, key: str, uid: int) -> None:
        """Store a uid, replacing any previous entry for the key."""
        with self._lock:
            self._entries[key] = _Entry(uid=uid, expires_at=self._clock() + self.ttl_seconds)

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if an entry was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_all(self) -> int:
        """Drop every entry. Returns the number of entries removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
