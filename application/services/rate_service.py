import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from domain.exceptions.currency import PersistenceError, ProviderError, RateNotFoundError
from domain.models.currency import ExchangeRate
from infrastructure.cache.rate_cache import RateCache
from infrastructure.persistence.repositories.exchange_rate import ExchangeRateRepository
from infrastructure.providers.base import ExchangeRateProvider

logger = logging.getLogger(__name__)

ONE = Decimal("1")
DEFAULT_BASE_CURRENCY = "EUR"


@dataclass
class _PairLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class RateService:
    """Resolves exchange rates through cache, store, cross rate and provider.

    Resolution order for a pair that is not an identity:
    cache, direct stored rate, cross rate via the base currency (each leg
    falls back to the inverse of the opposite stored rate), then one live
    provider call whose result is cached and persisted.
    """

    def __init__(
        self,
        provider: ExchangeRateProvider,
        repository: ExchangeRateRepository,
        cache: RateCache,
        base_currency: str = DEFAULT_BASE_CURRENCY,
    ):
        self.provider = provider
        self.repository = repository
        self.cache = cache
        self.base_currency = base_currency.upper()
        self._pair_locks: dict[tuple[str, str], _PairLock] = {}
        self._refresh_task: asyncio.Task | None = None

    async def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        if from_currency == to_currency:
            return ONE

        cached = await self.cache.get_rate(from_currency, to_currency)
        if cached.found:
            return cached.value.rate

        async with self._pair_lock((from_currency, to_currency)):
            # Another request may have resolved the pair while we waited
            cached = await self.cache.get_rate(from_currency, to_currency)
            if cached.found:
                return cached.value.rate

            return await self._resolve_rate(from_currency, to_currency)

    @contextlib.asynccontextmanager
    async def _pair_lock(self, pair: tuple[str, str]) -> AsyncIterator[None]:
        """Serialise resolution of one pair; the entry goes once nobody holds or awaits it."""
        entry = self._pair_locks.get(pair)
        if entry is None:
            entry = self._pair_locks[pair] = _PairLock()

        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._pair_locks[pair]

    async def _resolve_rate(self, from_currency: str, to_currency: str) -> Decimal:
        stored = await self.repository.get_rate(from_currency, to_currency)
        if stored is not None:
            await self.cache.set_rate(from_currency, to_currency, stored.rate, stored.fetched_at)
            return stored.rate

        cross = await self._calculate_cross_rate(from_currency, to_currency)
        if cross is not None:
            rate, fetched_at = cross
            await self.cache.set_rate(from_currency, to_currency, rate, fetched_at)
            logger.debug(f"Resolved {from_currency}/{to_currency} as cross rate via {self.base_currency}")
            return rate

        return await self._fetch_rate(from_currency, to_currency)

    async def _calculate_cross_rate(
        self, from_currency: str, to_currency: str
    ) -> tuple[Decimal, datetime] | None:
        from_leg = await self._get_known_rate(from_currency, self.base_currency)
        if from_leg is None:
            return None

        to_leg = await self._get_known_rate(self.base_currency, to_currency)
        if to_leg is None:
            return None

        # A cross rate is only as fresh as its older leg
        timestamps = [ts for ts in (from_leg[1], to_leg[1]) if ts is not None]
        fetched_at = min(timestamps) if timestamps else datetime.now(UTC)
        return from_leg[0] * to_leg[0], fetched_at

    async def _get_known_rate(
        self, from_currency: str, to_currency: str
    ) -> tuple[Decimal, datetime | None] | None:
        """Look up a rate without calling the provider."""
        if from_currency == to_currency:
            return ONE, None

        cached = await self.cache.get_rate(from_currency, to_currency)
        if cached.found:
            return cached.value.rate, cached.value.fetched_at

        stored = await self.repository.get_rate(from_currency, to_currency)
        if stored is not None:
            return stored.rate, stored.fetched_at

        cached = await self.cache.get_rate(to_currency, from_currency)
        if cached.found and cached.value.rate != 0:
            return ONE / cached.value.rate, cached.value.fetched_at

        stored = await self.repository.get_rate(to_currency, from_currency)
        if stored is not None and stored.rate != 0:
            return ONE / stored.rate, stored.fetched_at

        return None

    async def _fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        logger.info(f"Fetching {from_currency}/{to_currency} from {self.provider.name}")
        try:
            response = await self.provider.convert(ONE, from_currency, to_currency)
        except ProviderError as e:
            raise ProviderError(
                f"Failed to fetch rate {from_currency}/{to_currency} from provider: {e}"
            ) from e

        rate = response.rates.get(to_currency)
        if rate is None or rate <= 0:
            raise RateNotFoundError(from_currency, to_currency)

        fetched_at = datetime.now(UTC)
        await self.cache.set_rate(from_currency, to_currency, rate, fetched_at)

        try:
            await self.repository.upsert_rate(
                ExchangeRate(
                    base_currency=from_currency,
                    target_currency=to_currency,
                    rate=rate,
                    fetched_at=fetched_at,
                )
            )
        except PersistenceError as e:
            logger.warning(f"Could not persist fetched rate {from_currency}/{to_currency}: {e}")

        return rate

    async def get_all_rates(self, base_currency: str) -> dict[str, Decimal]:
        base_currency = base_currency.upper()

        cached = await self.cache.get_all_rates(base_currency)
        if cached.found:
            return {target: item.rate for target, item in cached.value.items()}

        stored = await self.repository.get_rates_for_base(base_currency)
        if stored:
            rates = {rate.target_currency: rate.rate for rate in stored}
            oldest = min(rate.fetched_at for rate in stored)
            await self.cache.set_all_rates(base_currency, rates, oldest)
            return rates

        try:
            response = await self.provider.get_latest_rates(base_currency)
        except ProviderError as e:
            raise ProviderError(f"Failed to fetch rates for {base_currency}: {e}") from e

        rates = {target: rate for target, rate in response.rates.items() if target != base_currency}
        await self.cache.set_all_rates(base_currency, rates, datetime.now(UTC))
        return rates

    async def refresh_rates(self) -> int:
        """Pull the latest base-currency quotes and write them everywhere.

        Concurrent callers share one in-flight refresh and its outcome.
        Returns the number of rate rows written (forward plus inverse).
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_rates())
        else:
            logger.info("Rate refresh already in progress, waiting for it")

        return await asyncio.shield(self._refresh_task)

    async def aclose(self) -> None:
        """Cancel an in-flight refresh and wait for it to exit."""
        task, self._refresh_task = self._refresh_task, None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("Cancelled in-flight rate refresh")
        except Exception as e:
            logger.warning(f"Rate refresh failed while shutting down: {e}")

    async def _refresh_rates(self) -> int:
        base = self.base_currency
        logger.info(f"Refreshing {base} rates from {self.provider.name}...")

        try:
            response = await self.provider.get_latest_rates(base)
        except ProviderError as e:
            raise ProviderError(f"Failed to fetch latest rates: {e}") from e

        fetched_at = datetime.now(UTC)
        rates: list[ExchangeRate] = []
        latest: dict[str, Decimal] = {}

        for target, rate in response.rates.items():
            if target == base:
                continue
            if rate <= 0:
                logger.warning(f"Skipping non-positive quote {base}/{target}: {rate}")
                continue

            inverse = ONE / rate
            rates.append(ExchangeRate(base, target, rate, fetched_at))
            rates.append(ExchangeRate(target, base, inverse, fetched_at))
            latest[target] = rate

            await self.cache.set_rate(base, target, rate, fetched_at)
            await self.cache.set_rate(target, base, inverse, fetched_at)

        await self.cache.set_all_rates(base, latest, fetched_at)
        await self.repository.bulk_upsert_rates(rates)

        logger.info(f"Refreshed {len(rates)} exchange rates for {base}")
        return len(rates)

    async def get_rate_date(self) -> str:
        latest = await self.repository.get_latest_fetch_time()
        if latest is None:
            return datetime.now(UTC).date().isoformat()
        return latest.date().isoformat()

    async def prune_stale_rates(self, max_age: timedelta) -> int:
        cutoff = datetime.now(UTC) - max_age
        removed = await self.repository.delete_old_rates(cutoff)
        if removed:
            logger.info(f"Pruned {removed} rates fetched before {cutoff.isoformat()}")
        return removed
