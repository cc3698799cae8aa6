"""Two-tier cache-aside layer: in-process local tier plus optional Redis tier."""
from __future__ import annotations

import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple, Type, TypeVar

import redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

logger = logging.getLogger("product_assistant.cache")

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_TTL = timedelta(hours=1)
SWEEP_INTERVAL = timedelta(minutes=1)
BACKFILL_TTL = timedelta(minutes=5)


class LocalCache:
    """Thread-safe in-memory key/value store with per-entry expiry."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: timedelta = SWEEP_INTERVAL,
    ) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._sweep_every = sweep_interval.total_seconds()
        self._next_sweep = clock() + self._sweep_every

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return payload

    def set(self, key: str, payload: str, ttl: timedelta) -> None:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._sweep(now)
            self._entries[key] = (now + ttl.total_seconds(), payload)

    def _sweep(self, now: float) -> None:
        # Caller holds the lock; keys never read again are dropped here.
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_every
        if expired:
            logger.debug("local cache sweep removed=%s remaining=%s", len(expired), len(self._entries))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def build_shared_client(redis_url: str) -> Optional[redis.Redis]:
    """Purpose: Connect to the shared Redis tier once, at startup.
    Inputs/Outputs: Input is a redis:// URL; output is a client or None.
    Side Effects / State: Opens a connection pool and pings the server.
    Dependencies: Uses redis.Redis.from_url.
    Failure Modes: Empty URL or a failed ping returns None (local-only mode).
    If Removed: Cached sessions and answers are not shared between workers.
    Testing Notes: Pass an empty URL and verify None; pass an unreachable URL
        and verify None plus a warning log.
    """
    # Local-only mode is decided here and never revisited.
    if not redis_url:
        logger.info("Redis URL not configured; using local cache only")
        return None
    try:
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
            health_check_interval=30,
        )
        client.ping()
    except (RedisError, ValueError) as exc:
        logger.warning("Failed to connect to Redis, using local cache only error=%s", exc)
        return None
    logger.info("Redis cache enabled")
    return client


class CacheService:
    """Cache-aside facade over a local tier and an optional shared tier."""

    def __init__(
        self,
        local: Optional[LocalCache] = None,
        shared: Optional[redis.Redis] = None,
        backfill_ttl: timedelta = BACKFILL_TTL,
    ) -> None:
        """Purpose: Wire the two cache tiers together.
        Inputs/Outputs: Inputs are the local tier, optional shared client and the
            local backfill TTL; no return value.
        Side Effects / State: None beyond storing references.
        Dependencies: LocalCache and a redis-compatible client (get/set/delete/scan_iter).
        Failure Modes: None at init.
        If Removed: Conversations and answers have nowhere to live.
        Testing Notes: Build with a FakeRedis to exercise both tiers.
        """
        self._local = local if local is not None else LocalCache()
        self._shared = shared
        self._backfill_ttl = backfill_ttl

    @property
    def has_shared_tier(self) -> bool:
        return self._shared is not None

    def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """Purpose: Read a value, local tier first, then the shared tier.
        Inputs/Outputs: Inputs are the key and the pydantic model to decode into;
            output is the decoded value or None on a miss.
        Side Effects / State: A shared-tier hit is copied into the local tier for
            the backfill TTL, independent of its original TTL.
        Dependencies: Uses model.model_validate_json for decoding.
        Failure Modes: Redis errors and undecodable payloads are logged and
            treated as misses.
        If Removed: Every lookup recomputes the answer.
        Testing Notes: Seed only the shared tier and verify the local backfill.
        """
        payload = self._local.get(key)
        if payload is not None:
            value = self._decode(key, payload, model)
            if value is not None:
                return value
            self._local.delete(key)

        if self._shared is None:
            return None
        try:
            payload = self._shared.get(key)
        except RedisError as exc:
            logger.warning("Redis cache get failed key=%s error=%s", key, exc)
            return None
        if payload is None:
            return None
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")

        value = self._decode(key, payload, model)
        if value is not None:
            self._local.set(key, payload, self._backfill_ttl)
        return value

    def set(self, key: str, value: BaseModel, ttl: Optional[timedelta] = None) -> None:
        """Purpose: Write a value to both tiers with the same TTL.
        Inputs/Outputs: Inputs are the key, a pydantic value and an optional TTL
            (one hour when omitted); no return value.
        Side Effects / State: Overwrites any existing entry (last writer wins).
        Dependencies: Uses model_dump_json and Redis SET with EX.
        Failure Modes: A shared-tier failure is logged; the local write stands.
        If Removed: Nothing is ever cached.
        Testing Notes: set then get returns an equal value before the TTL elapses.
        """
        expiration = ttl or DEFAULT_TTL
        payload = value.model_dump_json()
        self._local.set(key, payload, expiration)
        if self._shared is None:
            return
        try:
            self._shared.set(key, payload, ex=max(int(expiration.total_seconds()), 1))
        except RedisError as exc:
            logger.warning("Redis cache set failed key=%s error=%s", key, exc)

    def remove(self, key: str) -> None:
        self._local.delete(key)
        if self._shared is None:
            return
        try:
            self._shared.delete(key)
        except RedisError as exc:
            logger.warning("Redis cache delete failed key=%s error=%s", key, exc)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix`` from both tiers; returns the count."""
        removed = self._local.delete_prefix(prefix)
        if self._shared is None:
            return removed
        try:
            keys = list(self._shared.scan_iter(match=f"{prefix}*"))
            if keys:
                removed += int(self._shared.delete(*keys) or 0)
        except RedisError as exc:
            logger.warning("Redis cache prefix invalidation failed prefix=%s error=%s", prefix, exc)
        return removed

    @staticmethod
    def _decode(key: str, payload: str, model: Type[ModelT]) -> Optional[ModelT]:
        try:
            return model.model_validate_json(payload)
        except ValidationError as exc:
            logger.warning("Cache payload undecodable key=%s model=%s error=%s", key, model.__name__, exc)
            return None
