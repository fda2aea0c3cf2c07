import logging
from datetime import timedelta

from redis import asyncio as redis

from application.services.conversion_service import ConversionService
from application.services.currency_service import CurrencyService
from application.services.rate_service import RateService
from application.workers.rate_updater import RateUpdater
from config.settings import Settings
from infrastructure.cache.rate_cache import RateCache
from infrastructure.persistence.database import Database
from infrastructure.persistence.repositories.exchange_rate import ExchangeRateRepository
from infrastructure.providers import FrankfurterProvider

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Builds and owns every long-lived collaborator of the rate engine."""

    def __init__(self, settings: Settings):
        self.settings = settings

        self.db = Database(settings.DATABASE_URL)
        self.redis_client = (
            redis.from_url(settings.REDIS_URL, decode_responses=True)
            if settings.REDIS_ENABLED
            else None
        )
        self.provider = FrankfurterProvider(
            base_url=settings.FRANKFURTER_BASE_URL,
            timeout=settings.PROVIDER_TIMEOUT,
        )
        self.cache = RateCache(
            redis_client=self.redis_client,
            local_ttl=timedelta(seconds=settings.CACHE_LOCAL_TTL),
            remote_ttl=timedelta(seconds=settings.CACHE_REMOTE_TTL),
            cleanup_interval=timedelta(seconds=settings.CACHE_CLEANUP_INTERVAL),
            remote_timeout=settings.CACHE_REMOTE_TIMEOUT,
        )
        self.repository = ExchangeRateRepository(self.db)

        self.rate_service = RateService(
            provider=self.provider,
            repository=self.repository,
            cache=self.cache,
            base_currency=settings.BASE_CURRENCY,
        )
        self.conversion_service = ConversionService(self.rate_service)
        self.currency_service = CurrencyService(self.provider)
        self.rate_updater = RateUpdater(
            rate_service=self.rate_service,
            interval=timedelta(seconds=settings.RATE_UPDATE_INTERVAL),
            retry_delay=timedelta(seconds=settings.RATE_RETRY_DELAY),
            max_retries=settings.RATE_MAX_RETRIES,
            retention=(
                timedelta(days=settings.RATE_RETENTION_DAYS)
                if settings.RATE_RETENTION_DAYS > 0
                else None
            ),
        )

    async def startup(self, start_updater: bool = True) -> None:
        await self.db.create_tables()
        self.cache.start()
        if start_updater:
            self.rate_updater.start()
        logger.info(
            f"Services started (redis {'enabled' if self.redis_client else 'disabled'}, "
            f"base currency {self.rate_service.base_currency})"
        )

    async def cleanup(self) -> None:
        await self.rate_updater.stop()
        await self.rate_service.aclose()
        await self.cache.close()
        await self.provider.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        await self.db.close()
        logger.info("Services cleaned up successfully")
