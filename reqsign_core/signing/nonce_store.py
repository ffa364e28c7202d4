"""
Nonce Store
===========
Replay protection for signed requests.

Only nonces inside the timestamp freshness window matter: anything older
is rejected by the timestamp check alone, so entries are kept for twice
the tolerance and then evicted.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable

import redis
import structlog

from reqsign_core.config import DEFAULT_TOLERANCE_SECONDS
from reqsign_core.errors import StoreUnavailableError

logger = structlog.get_logger(__name__)

DEFAULT_NONCE_TTL_SECONDS = 2 * DEFAULT_TOLERANCE_SECONDS
DEFAULT_MAX_ENTRIES = 100_000


class NonceStore(ABC):
    """Records nonces that have already been accepted."""

    @abstractmethod
    def is_nonce_used(self, nonce: str) -> bool:
        ...

    @abstractmethod
    def claim_nonce(self, nonce: str) -> bool:
        """
        Atomically record a nonce.

        Returns:
            True if this call recorded it, False if it was already used
        """

    def mark_nonce_as_used(self, nonce: str) -> None:
        """Record a nonce. Marking an already-used nonce is a no-op."""
        self.claim_nonce(nonce)


class InMemoryNonceStore(NonceStore):
    """
    In-process nonce store.

    Entries are kept in arrival order, so eviction walks from the oldest
    entry and stops at the first one still inside the TTL. An entry is kept
    through the full TTL, including the instant it ends. When
    ``max_entries`` fresh entries are held, new claims raise
    StoreUnavailableError rather than forget a nonce early.

    Correct for a single instance only; use RedisNonceStore when several
    instances share traffic.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_NONCE_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._nonces: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def is_nonce_used(self, nonce: str) -> bool:
        with self._lock:
            self._evict_expired(self._clock())
            return nonce in self._nonces

    def claim_nonce(self, nonce: str) -> bool:
        with self._lock:
            now = self._clock()
            self._evict_expired(now)

            if nonce in self._nonces:
                logger.warning("replay_attack_detected", nonce=nonce[:8])
                return False

            if len(self._nonces) >= self.max_entries:
                logger.error("nonce_store_full", max_entries=self.max_entries)
                raise StoreUnavailableError("nonce store is full", store="memory")

            self._nonces[nonce] = now
            return True

    def purge_expired(self) -> int:
        """Evict expired entries now. Returns how many were removed."""
        with self._lock:
            return self._evict_expired(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._nonces.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._nonces)

    def _evict_expired(self, now: float) -> int:
        # Caller holds the lock
        cutoff = now - self.ttl_seconds
        removed = 0
        while self._nonces:
            oldest_nonce, seen_at = next(iter(self._nonces.items()))
            if seen_at >= cutoff:
                break
            del self._nonces[oldest_nonce]
            removed += 1
        return removed


class RedisNonceStore(NonceStore):
    """
    Redis-backed nonce store shared by every instance.

    Uses SET NX with an expiry, so the claim is atomic across instances and
    Redis evicts entries on its own. Redis failures raise
    StoreUnavailableError so validation fails closed.
    """

    def __init__(
        self,
        redis_client,
        ttl_seconds: int = DEFAULT_NONCE_TTL_SECONDS,
        prefix: str = "reqsign:nonce:",
    ):
        """
        Args:
            redis_client: Sync Redis client
            ttl_seconds: How long a nonce is remembered
            prefix: Key prefix
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = DEFAULT_NONCE_TTL_SECONDS) -> "RedisNonceStore":
        client = redis.from_url(url, decode_responses=True)
        return cls(client, ttl_seconds=ttl_seconds)

    def get_key(self, nonce: str) -> str:
        return f"{self.prefix}{nonce}"

    def is_nonce_used(self, nonce: str) -> bool:
        try:
            return bool(self.redis.exists(self.get_key(nonce)))
        except redis.RedisError as e:
            logger.error("nonce_store_unavailable", operation="exists", error=str(e))
            raise StoreUnavailableError(str(e), store="redis") from e

    def claim_nonce(self, nonce: str) -> bool:
        try:
            # A key can expire at exactly its TTL; hold it one second past the edge
            stored = self.redis.set(self.get_key(nonce), "1", nx=True, ex=self.ttl_seconds + 1)
        except redis.RedisError as e:
            logger.error("nonce_store_unavailable", operation="set", error=str(e))
            raise StoreUnavailableError(str(e), store="redis") from e

        if not stored:
            logger.warning("replay_attack_detected", nonce=nonce[:8])
            return False
        return True


def build_nonce_store(settings) -> NonceStore:
    """Pick Redis when a URL is configured, otherwise in-process storage."""
    if settings.redis_url:
        logger.info("nonce_store_selected", backend="redis")
        return RedisNonceStore.from_url(settings.redis_url, ttl_seconds=settings.nonce_ttl_seconds)

    logger.info("nonce_store_selected", backend="memory")
    return InMemoryNonceStore(ttl_seconds=settings.nonce_ttl_seconds)
