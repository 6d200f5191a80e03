"""Time- and size-bounded LRU cache for encoded processing results."""

import dataclasses
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from cachetools import Cache, TTLCache

from photocull.models import TransformKind, default_params

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
DEFAULT_TTL_SECONDS = 5 * 60


@dataclasses.dataclass
class CacheEntry:
    """A cached result. Only last_accessed_at changes after creation."""
    key: str
    data: bytes
    created_at: float
    expires_at: float
    last_accessed_at: float


class ProcessedImageCache(TTLCache):
    """An LRU cache whose entries also expire after a fixed time-to-live.

    Expired entries read as misses and are dropped as soon as they are seen;
    every write sweeps expired entries before evicting the least recently used
    one to make room. All public operations hold a single re-entrant lock.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl: float = DEFAULT_TTL_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        super().__init__(maxsize=capacity, ttl=ttl, timer=timer)
        self._lock = threading.RLock()
        log.info(f"Initialized result cache with capacity {capacity} and TTL {ttl:.0f}s.")

    def __setitem__(self, key, value):
        # Expired entries are swept first; popitem runs only if still full
        super().__setitem__(key, value)
        log.debug(f"Cached item '{key}'. Cache size: {self.currsize}/{self.maxsize}")

    def popitem(self):
        """Extend popitem to log eviction."""
        key, value = super().popitem()
        log.debug(f"Evicted item '{key}' to free up space. Cache size: {self.currsize}/{self.maxsize}")
        return key, value

    def get(self, key, default=None) -> Optional[bytes]:
        """Returns the cached bytes for key, or default on a miss."""
        with self._lock:
            if key in self:
                entry = self[key]  # refreshes LRU position
                entry.last_accessed_at = self.timer()
                return entry.data
            # Drop the entry now if it is only present because it expired
            if Cache.__contains__(self, key):
                log.debug(f"Item '{key}' expired")
                self.expire()
            return default

    def set(self, key: str, data: bytes) -> None:
        """Stores data under key, replacing any previous entry atomically."""
        with self._lock:
            now = self.timer()
            self[key] = CacheEntry(
                key=key,
                data=data,
                created_at=now,
                expires_at=now + self.ttl,
                last_accessed_at=now,
            )

    def peek(self, key) -> Optional[CacheEntry]:
        """Returns the live entry for key without touching its LRU position."""
        with self._lock:
            if key not in self:
                return None
            return Cache.__getitem__(self, key)

    def clear(self):
        with self._lock:
            super().clear()
        log.debug("Cleared result cache")


def build_cache_key(
    image_path: Union[Path, str],
    kind: TransformKind,
    params=None,
) -> str:
    """Builds a key unique to one source file and one logical result."""
    if isinstance(image_path, Path):
        path_str = image_path.as_posix()
    else:
        path_str = str(image_path)
    key = f"{path_str}::{kind.value}"
    if params is not None and (
        kind in (TransformKind.CUSTOM, TransformKind.ROTATE) or params != default_params(kind)
    ):
        key = f"{key}::{params.cache_token()}"
    return key
