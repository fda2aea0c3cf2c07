# nosec B101

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from application.services.conversion_service import ConversionService
from domain.exceptions.currency import BulkConversionError, ProviderError, RateNotFoundError
from domain.models.currency import BulkConvertItem

RATES = {
    ("USD", "EUR"): Decimal("0.92"),
    ("USD", "GBP"): Decimal("0.79"),
    ("EUR", "GBP"): Decimal("0.86"),
}


@pytest.fixture
def rate_service():
    service = AsyncMock()

    async def get_rate(from_currency, to_currency):
        if from_currency == to_currency:
            return Decimal("1")
        try:
            return RATES[(from_currency, to_currency)]
        except KeyError:
            raise RateNotFoundError(from_currency, to_currency) from None

    service.get_rate.side_effect = get_rate
    service.get_rate_date.return_value = "2025-11-05"
    return service


@pytest.fixture
def service(rate_service):
    return ConversionService(rate_service=rate_service)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [Decimal("100"), Decimal("0"), Decimal("-42.50")])
async def test_convert_same_currency_returns_amount(service, rate_service, amount):
    assert await service.convert(amount, "USD", "usd") == amount

    rate_service.get_rate.assert_not_awaited()


@pytest.mark.asyncio
async def test_convert_multiplies_by_rate(service, rate_service):
    result = await service.convert(Decimal("100"), "usd", "eur")

    assert result == Decimal("92.00")
    rate_service.get_rate.assert_awaited_once_with("USD", "EUR")


@pytest.mark.asyncio
async def test_convert_propagates_rate_errors(service):
    with pytest.raises(RateNotFoundError):
        await service.convert(Decimal("10"), "EUR", "XAU")


@pytest.mark.asyncio
async def test_bulk_convert_sums_converted_amounts(service):
    items = [
        BulkConvertItem(amount=Decimal("100"), from_currency="USD"),
        BulkConvertItem(amount=Decimal("50"), from_currency="EUR"),
    ]

    result = await service.bulk_convert(items, "GBP")

    assert result.to_currency == "GBP"
    assert [c.converted_amount for c in result.conversions] == [Decimal("79.00"), Decimal("43.00")]
    assert [c.rate for c in result.conversions] == [Decimal("0.79"), Decimal("0.86")]
    assert result.total_amount == Decimal("122.00")
    assert result.rate_date == "2025-11-05"


@pytest.mark.asyncio
async def test_bulk_convert_same_currency_item(service):
    items = [BulkConvertItem(amount=Decimal("25"), from_currency="GBP")]

    result = await service.bulk_convert(items, "GBP")

    assert result.total_amount == Decimal("25")
    assert result.conversions[0].rate == Decimal("1")


@pytest.mark.asyncio
async def test_bulk_convert_fails_whole_batch(service, rate_service):
    items = [
        BulkConvertItem(amount=Decimal("100"), from_currency="USD"),
        BulkConvertItem(amount=Decimal("50"), from_currency="CHF"),
    ]

    with pytest.raises(BulkConversionError) as exc_info:
        await service.bulk_convert(items, "GBP")

    error = exc_info.value
    assert error.from_currency == "CHF"
    assert error.to_currency == "GBP"
    assert isinstance(error.__cause__, RateNotFoundError)
    assert "Failed to get rate for CHF to GBP" in str(error)
    rate_service.get_rate_date.assert_not_awaited()


@pytest.mark.asyncio
async def test_bulk_convert_wraps_provider_errors(service, rate_service):
    rate_service.get_rate.side_effect = ProviderError("Frankfurter request failed: ConnectTimeout")

    with pytest.raises(BulkConversionError, match="ConnectTimeout"):
        await service.bulk_convert([BulkConvertItem(Decimal("1"), "USD")], "EUR")
