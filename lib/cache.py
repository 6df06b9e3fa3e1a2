import logging
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

CACHE_TIMEOUT = 300  # 5 minutes
FINGERPRINT_EDGE_BYTES = 16

def audio_fingerprint(audio_data: bytes, edge: int = FINGERPRINT_EDGE_BYTES) -> str:
    """
    Cheap content key for an audio buffer: byte length plus the hex of its first
    and last `edge` bytes. Two clips with the same length and matching edges
    collide; that is accepted for a short-lived interactive cache.
    """
    return f"{len(audio_data)}:{audio_data[:edge].hex()}:{audio_data[-edge:].hex()}"

def text_fingerprint(text: str) -> str:
    return text.strip()

class FingerprintCache(Generic[T]):
    """
    In-process map from fingerprint to a computed value with a fixed TTL.

    There is no background timer: consumers call `evict_expired()` at the start
    of each read/write cycle. Entries are never updated in place, a recompute
    overwrites the whole entry.
    """

    def __init__(self, name: str, ttl_seconds: float = CACHE_TIMEOUT, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[T, float]] = {}

    def get(self, fingerprint: str) -> Optional[T]:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None

        value, created_at = entry
        if self._clock() - created_at >= self.ttl_seconds:
            del self._entries[fingerprint]
            return None

        logger.info(f"Cache hit in {self.name} cache")
        return value

    def put(self, fingerprint: str, value: T) -> None:
        self._entries[fingerprint] = (value, self._clock())
        logger.info(f"Stored entry in {self.name} cache ({len(self._entries)} entries)")

    def evict_expired(self) -> None:
        now = self._clock()
        expired = [
            key for key, (_, created_at) in self._entries.items()
            if now - created_at >= self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Evicted {len(expired)} expired entries from {self.name} cache")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
