from decimal import Decimal
from typing import Protocol, runtime_checkable

from domain.models.currency import LatestRates


@runtime_checkable
class ExchangeRateProvider(Protocol):
    """Contract the rate services expect from an FX source.

    Implementations raise ``ProviderError`` for any transport, HTTP or decoding
    failure and never retry on their own; retrying is the updater's job.
    """

    @property
    def name(self) -> str:
        ...

    async def get_latest_rates(self, base_currency: str) -> LatestRates:
        ...

    async def get_latest_rates_for_currencies(
        self, base_currency: str, target_currencies: list[str]
    ) -> LatestRates:
        ...

    async def get_supported_currencies(self) -> list[dict]:
        ...

    async def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> LatestRates:
        ...

    async def get_historical_rates(self, date: str, base_currency: str) -> LatestRates:
        ...

    async def close(self) -> None:
        ...
