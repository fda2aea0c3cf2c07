# nosec B101

from unittest.mock import AsyncMock

import pytest

from application.services.currency_service import CurrencyService
from domain.exceptions.currency import InvalidCurrencyError, ProviderError


@pytest.mark.parametrize("code, expected", [("usd", "USD"), ("EUR", "EUR"), (" gbp ", "GBP")])
def test_normalize_code_uppercases(code, expected):
    assert CurrencyService.normalize_code(code) == expected


@pytest.mark.parametrize("code", ["", None, "US", "USDT", "U1D", "€UR"])
def test_normalize_code_rejects_malformed_codes(code):
    with pytest.raises(InvalidCurrencyError):
        CurrencyService.normalize_code(code)


@pytest.mark.asyncio
async def test_get_supported_currencies_enriched_and_sorted():
    provider = AsyncMock()
    provider.name = "frankfurter"
    provider.get_supported_currencies.return_value = [
        {"code": "USD", "name": "United States Dollar"},
        {"code": "JPY", "name": "Japanese Yen"},
        {"code": "EUR", "name": "Euro"},
        {"code": "PHP", "name": "Philippine Peso"},
    ]
    service = CurrencyService(provider)

    currencies = await service.get_supported_currencies()

    assert [c.code for c in currencies] == ["EUR", "JPY", "PHP", "USD"]
    eur, jpy, php, usd = currencies
    assert eur.symbol == "€"
    assert eur.decimal_places == 2
    assert jpy.symbol == "¥"
    assert jpy.decimal_places == 0
    assert usd.name == "United States Dollar"


@pytest.mark.asyncio
async def test_get_supported_currencies_unknown_symbol_falls_back_to_code():
    provider = AsyncMock()
    provider.get_supported_currencies.return_value = [{"code": "XAU", "name": "Gold"}]

    currencies = await CurrencyService(provider).get_supported_currencies()

    assert currencies[0].symbol == "XAU"


@pytest.mark.asyncio
async def test_get_supported_currencies_propagates_provider_error():
    provider = AsyncMock()
    provider.get_supported_currencies.side_effect = ProviderError("Frankfurter HTTP error 503")

    with pytest.raises(ProviderError):
        await CurrencyService(provider).get_supported_currencies()
