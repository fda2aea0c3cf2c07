import asyncio
import contextlib
import json
import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation

from redis import asyncio as redis

from domain.exceptions.currency import CacheError
from domain.models.currency import CachedRate, CacheLookup
from infrastructure.cache.local_cache import LocalCache

logger = logging.getLogger(__name__)

RATE_KEY_PREFIX = "currency:rate:"
ALL_RATES_KEY = "currency:rates:all"
SUPPORTED_CURRENCIES_KEY = "currency:supported"
SCAN_BATCH_SIZE = 500

LOCAL = "local"
REMOTE = "remote"


class RateCache:
    """Two-tier rate cache: an in-process tier in front of a shared Redis tier.

    Reads check the local tier first and promote remote hits into it. Writes go
    to both tiers. Redis is strictly best effort: timeouts, connection errors
    and undecodable payloads are logged and reported as misses, never raised.
    Pass ``redis_client=None`` to run with the local tier only.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        local_ttl: timedelta = timedelta(minutes=5),
        remote_ttl: timedelta = timedelta(hours=1),
        cleanup_interval: timedelta = timedelta(minutes=1),
        remote_timeout: float = 2.0,
        local_cache: LocalCache | None = None,
    ):
        self.redis = redis_client
        self.local = local_cache if local_cache is not None else LocalCache(ttl=local_ttl)
        self.remote_ttl = remote_ttl
        self.cleanup_interval = cleanup_interval
        self.remote_timeout = remote_timeout
        self._cleanup_task: asyncio.Task | None = None

    def _make_rate_key(self, base_currency: str, target_currency: str) -> str:
        return f"{RATE_KEY_PREFIX}{base_currency}:{target_currency}"

    def _make_all_rates_key(self, base_currency: str) -> str:
        # One aggregate per base currency, all under the currency:rates:all namespace
        return f"{ALL_RATES_KEY}:{base_currency}"

    @staticmethod
    def _serialize(rate: CachedRate) -> dict:
        return {
            "rate": str(rate.rate),
            "fetched_at": rate.fetched_at.isoformat(),
            "cached_at": rate.cached_at.isoformat(),
        }

    @staticmethod
    def _deserialize(data: dict) -> CachedRate:
        return CachedRate(
            rate=Decimal(data["rate"]),
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
            cached_at=datetime.fromisoformat(data["cached_at"]),
        )

    def _remote_failure(self, operation: str, key: str, error: Exception) -> CacheError:
        if isinstance(error, (json.JSONDecodeError, KeyError, TypeError, ValueError, InvalidOperation)):
            cache_error = CacheError(f"Invalid json data for {key}: {error}")
        else:
            cache_error = CacheError(f"Redis {operation} failed for {key}: {error.__class__.__name__}")
        logger.warning(f"Cache {operation} error: {cache_error}")
        return cache_error

    async def _remote_get(self, key: str):
        async with asyncio.timeout(self.remote_timeout):
            data = await self.redis.get(key)
        return json.loads(data) if data else None

    async def _remote_set(self, key: str, payload) -> None:
        try:
            async with asyncio.timeout(self.remote_timeout):
                await self.redis.setex(key, self.remote_ttl, json.dumps(payload))
        except Exception as e:
            self._remote_failure("set", key, e)

    async def get_rate(self, base_currency: str, target_currency: str) -> CacheLookup[CachedRate]:
        key = self._make_rate_key(base_currency, target_currency)

        cached = self.local.get(key)
        if cached is not None:
            return CacheLookup(value=cached, tier=LOCAL)

        if self.redis is None:
            return CacheLookup()

        try:
            data = await self._remote_get(key)
            if data is None:
                return CacheLookup()
            rate = self._deserialize(data)
        except Exception as e:
            return CacheLookup(error=self._remote_failure("get", key, e))

        self.local.set(key, rate)
        return CacheLookup(value=rate, tier=REMOTE)

    async def set_rate(
        self, base_currency: str, target_currency: str, rate: Decimal, fetched_at: datetime
    ) -> CachedRate:
        key = self._make_rate_key(base_currency, target_currency)
        cached = CachedRate(rate=rate, fetched_at=fetched_at, cached_at=datetime.now(UTC))

        self.local.set(key, cached)
        if self.redis is not None:
            await self._remote_set(key, self._serialize(cached))

        return cached

    async def get_all_rates(self, base_currency: str) -> CacheLookup[dict[str, CachedRate]]:
        key = self._make_all_rates_key(base_currency)

        cached = self.local.get(key)
        if cached is not None:
            return CacheLookup(value=cached, tier=LOCAL)

        if self.redis is None:
            return CacheLookup()

        try:
            data = await self._remote_get(key)
            if data is None:
                return CacheLookup()
            rates = {target: self._deserialize(item) for target, item in data.items()}
        except Exception as e:
            return CacheLookup(error=self._remote_failure("get", key, e))

        self.local.set(key, rates)
        return CacheLookup(value=rates, tier=REMOTE)

    async def set_all_rates(
        self, base_currency: str, rates: dict[str, Decimal], fetched_at: datetime
    ) -> None:
        key = self._make_all_rates_key(base_currency)
        now = datetime.now(UTC)
        cached = {
            target: CachedRate(rate=rate, fetched_at=fetched_at, cached_at=now)
            for target, rate in rates.items()
        }

        self.local.set(key, cached)
        if self.redis is not None:
            await self._remote_set(
                key, {target: self._serialize(item) for target, item in cached.items()}
            )

    async def invalidate_all(self) -> None:
        self.local.clear()

        if self.redis is None:
            return

        try:
            deleted = await self._delete_matching(f"{RATE_KEY_PREFIX}*")
            deleted += await self._delete_matching(f"{ALL_RATES_KEY}*")
            async with asyncio.timeout(self.remote_timeout):
                await self.redis.delete(SUPPORTED_CURRENCIES_KEY)
        except Exception as e:
            self._remote_failure("invalidate", f"{RATE_KEY_PREFIX}*", e)
            return

        logger.info(f"Invalidated {deleted} cached rate keys")

    async def _delete_matching(self, pattern: str) -> int:
        """Delete keys matching ``pattern`` one SCAN batch at a time.

        Each round trip gets its own timeout, so a large keyspace only makes
        the sweep longer.
        """
        deleted = 0
        cursor = 0
        while True:
            async with asyncio.timeout(self.remote_timeout):
                cursor, keys = await self.redis.scan(cursor=cursor, match=pattern, count=SCAN_BATCH_SIZE)
                if keys:
                    await self.redis.delete(*keys)
            deleted += len(keys)
            if int(cursor) == 0:
                return deleted

    def start(self) -> None:
        """Start the periodic sweep of expired local entries."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(
                self._cleanup_loop(), name="rate-cache-cleanup"
            )

    async def _cleanup_loop(self) -> None:
        interval = self.cleanup_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            removed = self.local.purge_expired()
            if removed:
                logger.debug(f"Removed {removed} expired local cache entries")

    async def close(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
