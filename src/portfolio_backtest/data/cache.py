import hashlib
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def key_path(cache_dir, prefix: str, key: str, suffix: str = ".csv") -> Path:
    h = hashlib.sha256(key.encode()).hexdigest()[:16]
    return Path(cache_dir) / f"{prefix}_{h}{suffix}"


class ExpiringCache:
    """
    In-process key -> value store where every entry carries its own expiry.

    Construct one per process and hand it to the data providers that need
    it; nothing in the simulation core knows about it.
    """

    def __init__(self, ttl_seconds: float = 24 * 60 * 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None):
        ttl = self.ttl_seconds if ttl_seconds is None else float(ttl_seconds)
        self._entries[key] = (value, self._clock() + ttl)

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in list(self._entries.items()) if expires_at <= now]
        for k in expired:
            self._entries.pop(k, None)
        if expired:
            logger.debug("Dropped %d expired cache entries", len(expired))
        return len(expired)

    def __len__(self):
        return len(self._entries)
