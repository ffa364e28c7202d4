"""
Tests for nonce stores
======================
"""

import threading
from unittest.mock import MagicMock

import pytest
import redis

from reqsign_core.config import SignatureSettings
from reqsign_core.errors import StoreUnavailableError
from reqsign_core.signing import (
    InMemoryNonceStore,
    RedisNonceStore,
    build_nonce_store,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestInMemoryNonceStore:
    """Tests for the in-process store."""

    def test_tracks_used_nonces(self, nonce_store):
        nonce = "test-nonce"

        assert nonce_store.is_nonce_used(nonce) is False

        nonce_store.mark_nonce_as_used(nonce)

        assert nonce_store.is_nonce_used(nonce) is True
        assert nonce_store.is_nonce_used("different-nonce") is False

    def test_mark_is_idempotent(self, nonce_store):
        nonce_store.mark_nonce_as_used("n1")
        nonce_store.mark_nonce_as_used("n1")

        assert len(nonce_store) == 1

    def test_claim_only_once(self, nonce_store):
        assert nonce_store.claim_nonce("n1") is True
        assert nonce_store.claim_nonce("n1") is False

    def test_evicts_after_ttl(self):
        clock = FakeClock()
        store = InMemoryNonceStore(ttl_seconds=600, clock=clock)
        store.mark_nonce_as_used("old")

        clock.advance(599)
        assert store.is_nonce_used("old") is True

        clock.advance(1)
        assert store.is_nonce_used("old") is True

        clock.advance(1)
        assert store.is_nonce_used("old") is False
        assert len(store) == 0

    def test_eviction_bounds_memory_under_sustained_load(self):
        """Size should stay near rate x TTL, not grow with total traffic."""
        clock = FakeClock()
        store = InMemoryNonceStore(ttl_seconds=10, clock=clock)

        for i in range(10_000):
            store.claim_nonce(f"nonce-{i}")
            clock.advance(0.1)

        # 10 seconds of traffic at 10 per second
        assert len(store) <= 102

    def test_purge_expired(self):
        clock = FakeClock()
        store = InMemoryNonceStore(ttl_seconds=5, clock=clock)
        for i in range(3):
            store.mark_nonce_as_used(f"n{i}")

        clock.advance(6)

        assert store.purge_expired() == 3
        assert len(store) == 0

    def test_kept_at_exact_end_of_ttl(self):
        clock = FakeClock()
        store = InMemoryNonceStore(ttl_seconds=600, clock=clock)
        assert store.claim_nonce("edge") is True

        clock.advance(600)

        assert store.claim_nonce("edge") is False

    def test_full_store_refuses_new_nonces(self):
        """A full store should fail closed, never forget a fresh nonce."""
        store = InMemoryNonceStore(ttl_seconds=600, max_entries=3)
        for i in range(3):
            store.mark_nonce_as_used(f"n{i}")

        with pytest.raises(StoreUnavailableError):
            store.claim_nonce("n3")

        assert len(store) == 3
        assert store.is_nonce_used("n0") is True
        assert store.claim_nonce("n0") is False

    def test_full_store_accepts_again_after_eviction(self):
        clock = FakeClock()
        store = InMemoryNonceStore(ttl_seconds=10, max_entries=2, clock=clock)
        store.mark_nonce_as_used("a")
        store.mark_nonce_as_used("b")

        clock.advance(11)

        assert store.claim_nonce("c") is True
        assert len(store) == 1

    def test_concurrent_claims_single_winner(self, nonce_store):
        results = []
        barrier = threading.Barrier(16)

        def claim():
            barrier.wait()
            results.append(nonce_store.claim_nonce("shared"))

        threads = [threading.Thread(target=claim) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1

    @pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_entries": 0}])
    def test_rejects_bad_limits(self, kwargs):
        with pytest.raises(ValueError):
            InMemoryNonceStore(**kwargs)


class TestRedisNonceStore:
    """Tests for the Redis-backed store (client mocked)."""

    def test_claim_uses_set_nx_with_expiry(self):
        client = MagicMock()
        client.set.return_value = True
        store = RedisNonceStore(client, ttl_seconds=600)

        assert store.claim_nonce("abc") is True
        client.set.assert_called_once_with("reqsign:nonce:abc", "1", nx=True, ex=601)

    def test_claim_existing_nonce(self):
        client = MagicMock()
        client.set.return_value = None
        store = RedisNonceStore(client)

        assert store.claim_nonce("abc") is False

    def test_is_nonce_used(self):
        client = MagicMock()
        client.exists.return_value = 1
        store = RedisNonceStore(client, prefix="test:")

        assert store.is_nonce_used("abc") is True
        client.exists.assert_called_once_with("test:abc")

    def test_outage_fails_closed(self):
        client = MagicMock()
        client.exists.side_effect = redis.ConnectionError("connection refused")
        client.set.side_effect = redis.TimeoutError("timed out")
        store = RedisNonceStore(client)

        with pytest.raises(StoreUnavailableError):
            store.is_nonce_used("abc")
        with pytest.raises(StoreUnavailableError):
            store.claim_nonce("abc")


class TestBuildNonceStore:
    """Tests for backend selection."""

    def test_memory_by_default(self):
        store = build_nonce_store(SignatureSettings(tolerance_seconds=120))

        assert isinstance(store, InMemoryNonceStore)
        assert store.ttl_seconds == 240

    def test_redis_when_url_configured(self):
        store = build_nonce_store(SignatureSettings(redis_url="redis://localhost:6379/0"))

        assert isinstance(store, RedisNonceStore)
        assert store.ttl_seconds == 600
