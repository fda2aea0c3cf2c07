import asyncio
import contextlib
import logging
import signal
from datetime import UTC, datetime, timedelta

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_fixed

from application.services.rate_service import RateService
from domain.models.currency import UpdaterStatus

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_INTERVAL = timedelta(hours=1)
DEFAULT_RETRY_DELAY = timedelta(minutes=5)
DEFAULT_MAX_RETRIES = 3


class RateUpdater:
    """
    Background task that keeps stored and cached rates fresh.

    Runs one update immediately on start, then on a fixed-rate schedule. A
    failed update is retried after ``retry_delay``; ``max_retries`` consecutive
    failures give up until the next scheduled tick. Ticks that fall due while
    retries are still running are dropped, not queued.
    """

    def __init__(
        self,
        rate_service: RateService,
        interval: timedelta = DEFAULT_UPDATE_INTERVAL,
        retry_delay: timedelta = DEFAULT_RETRY_DELAY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retention: timedelta | None = None,
    ):
        """
        Args:
            rate_service: Service whose refresh_rates() performs one update
            interval: Time between scheduled updates (non-positive means one hour)
            retry_delay: Pause before retrying a failed update
            max_retries: Consecutive failures allowed per scheduled tick
            retention: Prune stored rates older than this after a successful
                scheduled update; None disables pruning
        """
        self.rate_service = rate_service
        self.interval = interval if interval > timedelta(0) else DEFAULT_UPDATE_INTERVAL
        self.retry_delay = retry_delay
        self.max_retries = max(1, max_retries)
        self.retention = retention

        self._task: asyncio.Task | None = None
        self._running = False
        self._retry_count = 0
        self._last_update: datetime | None = None
        self._last_error: str | None = None

    @property
    def retry_count(self) -> int:
        return self._retry_count

    def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run(), name="rate-updater")
        logger.info(f"Rate updater started with interval: {self.interval}")

    async def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping rate updater...")
        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Rate updater stopped")

    async def force_update(self) -> int:
        """Run one update now, outside the schedule, and surface its error."""
        count = await self._update_rates()
        self._retry_count = 0
        return count

    def status(self) -> UpdaterStatus:
        return UpdaterStatus(
            running=self._running,
            interval=self.interval.total_seconds(),
            last_update=self._last_update,
            last_error=self._last_error,
        )

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.interval.total_seconds()
        next_tick = loop.time() + interval

        await self._run_update_cycle()

        while True:
            delay = next_tick - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

            await self._run_update_cycle()

            now = loop.time()
            next_tick += interval
            while next_tick <= now:
                next_tick += interval

    async def _run_update_cycle(self) -> bool:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_fixed(self.retry_delay.total_seconds()),
            before_sleep=self._before_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    await self._update_rates()
        except Exception as e:
            logger.error(
                f"Rate update failed {self.max_retries} times in a row, "
                f"waiting for next scheduled update: {e}"
            )
            self._retry_count = 0
            return False

        self._retry_count = 0
        await self._prune_stale_rates()
        return True

    def _before_retry(self, retry_state: RetryCallState) -> None:
        self._retry_count = retry_state.attempt_number
        logger.warning(
            f"Scheduling rate update retry {self._retry_count}/{self.max_retries - 1} "
            f"in {self.retry_delay}"
        )

    async def _update_rates(self) -> int:
        logger.info("Updating exchange rates...")

        try:
            count = await self.rate_service.refresh_rates()
        except Exception as e:
            self._last_error = str(e)
            logger.error(f"Failed to update exchange rates: {e}")
            raise

        self._last_update = datetime.now(UTC)
        self._last_error = None
        logger.info(f"Exchange rates updated successfully at {self._last_update.isoformat()}")
        return count

    async def _prune_stale_rates(self) -> None:
        if self.retention is None:
            return

        try:
            await self.rate_service.prune_stale_rates(self.retention)
        except Exception as e:
            logger.warning(f"Failed to prune stale rates: {e}")


async def main():
    """Run the updater as a standalone process."""
    from application.services.service_factory import ServiceFactory
    from config.settings import get_settings
    from infrastructure.monitoring.logger import setup_logging

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    service_factory = ServiceFactory(settings)
    stop_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, shutting down gracefully...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        await service_factory.startup()
        await stop_event.wait()
    finally:
        await service_factory.cleanup()
        logger.info("Cleanup completed")


if __name__ == "__main__":
    asyncio.run(main())
