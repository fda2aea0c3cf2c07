from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api.dependencies import (
    get_conversion_service,
    get_currency_service,
    get_rate_service,
    get_rate_updater,
)
from api.main import app
from domain.exceptions.currency import (
    BulkConversionError,
    PersistenceError,
    ProviderError,
    RateNotFoundError,
)
from domain.models.currency import (
    BulkConvertResponse,
    BulkConvertResult,
    SupportedCurrency,
    UpdaterStatus,
)


@pytest.fixture
def rate_service():
    service = MagicMock()
    service.get_rate = AsyncMock(return_value=Decimal("0.92"))
    service.get_rate_date = AsyncMock(return_value="2025-11-05")
    service.get_all_rates = AsyncMock(
        return_value={"GBP": Decimal("0.86"), "USD": Decimal("1.10")}
    )
    return service


@pytest.fixture
def conversion_service():
    service = MagicMock()
    service.convert = AsyncMock(return_value=Decimal("92.00"))
    service.bulk_convert = AsyncMock()
    return service


@pytest.fixture
def currency_service():
    service = MagicMock()
    service.get_supported_currencies = AsyncMock(
        return_value=[
            SupportedCurrency(code="EUR", name="Euro", symbol="€", decimal_places=2),
            SupportedCurrency(code="JPY", name="Japanese Yen", symbol="¥", decimal_places=0),
        ]
    )
    return service


@pytest.fixture
def rate_updater():
    updater = MagicMock()
    updater.force_update = AsyncMock(return_value=4)
    updater.status.return_value = UpdaterStatus(
        running=True,
        interval=3600.0,
        last_update=datetime(2025, 11, 5, 16, 0, tzinfo=UTC),
        last_error=None,
    )
    return updater


@pytest.fixture
def client(rate_service, conversion_service, currency_service, rate_updater):
    app.dependency_overrides[get_rate_service] = lambda: rate_service
    app.dependency_overrides[get_conversion_service] = lambda: conversion_service
    app.dependency_overrides[get_currency_service] = lambda: currency_service
    app.dependency_overrides[get_rate_updater] = lambda: rate_updater
    client = TestClient(app, raise_server_exceptions=False)
    yield client
    app.dependency_overrides.clear()


def test_convert_success(client, conversion_service, rate_service):
    response = client.get("/api/v1/currency/convert?amount=100&from=usd&to=eur")

    assert response.status_code == 200
    data = response.json()
    assert data["from_currency"] == "USD"
    assert data["to_currency"] == "EUR"
    assert Decimal(data["original_amount"]) == Decimal("100")
    assert Decimal(data["converted_amount"]) == Decimal("92.00")
    assert Decimal(data["rate"]) == Decimal("0.92")
    assert data["rate_date"] == "2025-11-05"

    conversion_service.convert.assert_awaited_once_with(Decimal("100"), "USD", "EUR")


def test_convert_rejects_malformed_code(client, conversion_service):
    response = client.get("/api/v1/currency/convert?amount=100&from=US&to=EUR")

    assert response.status_code == 400
    assert "Invalid currency code" in response.json()["detail"]
    conversion_service.convert.assert_not_awaited()


def test_convert_requires_amount(client):
    response = client.get("/api/v1/currency/convert?from=USD&to=EUR")

    assert response.status_code == 422


def test_convert_rate_not_found_maps_to_404(client, conversion_service):
    conversion_service.convert.side_effect = RateNotFoundError("USD", "XAU")

    response = client.get("/api/v1/currency/convert?amount=1&from=USD&to=XAU")

    assert response.status_code == 404
    assert response.json()["detail"] == "Rate not found for USD/XAU"


def test_provider_error_maps_to_503(client, rate_service):
    rate_service.get_rate.side_effect = ProviderError("Frankfurter request failed: ConnectError")

    response = client.get("/api/v1/currency/rate?from=USD&to=EUR")

    assert response.status_code == 503
    assert response.json()["detail"] == "Exchange rate service unavailable"


def test_persistence_error_maps_to_503(client, rate_service):
    rate_service.get_rate.side_effect = PersistenceError("Failed to load rate USD/EUR")

    response = client.get("/api/v1/currency/rate?from=USD&to=EUR")

    assert response.status_code == 503


def test_unexpected_error_maps_to_500(client, rate_service):
    rate_service.get_rate.side_effect = RuntimeError("boom")

    response = client.get("/api/v1/currency/rate?from=USD&to=EUR")

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal server error"


def test_get_rate(client, rate_service):
    response = client.get("/api/v1/currency/rate?from=usd&to=eur")

    assert response.status_code == 200
    data = response.json()
    assert data["from_currency"] == "USD"
    assert data["to_currency"] == "EUR"
    assert Decimal(data["rate"]) == Decimal("0.92")
    rate_service.get_rate.assert_awaited_once_with("USD", "EUR")


def test_get_rates_defaults_to_eur(client, rate_service):
    response = client.get("/api/v1/currency/rates")

    assert response.status_code == 200
    data = response.json()
    assert data["base"] == "EUR"
    assert {k: Decimal(v) for k, v in data["rates"].items()} == {
        "GBP": Decimal("0.86"),
        "USD": Decimal("1.10"),
    }
    rate_service.get_all_rates.assert_awaited_once_with("EUR")


def test_get_rates_for_other_base(client, rate_service):
    response = client.get("/api/v1/currency/rates?base=usd")

    assert response.status_code == 200
    rate_service.get_all_rates.assert_awaited_once_with("USD")


def test_bulk_convert(client, conversion_service):
    conversion_service.bulk_convert.return_value = BulkConvertResponse(
        to_currency="GBP",
        conversions=[
            BulkConvertResult(Decimal("100"), "USD", Decimal("79.00"), Decimal("0.79")),
            BulkConvertResult(Decimal("50"), "EUR", Decimal("43.00"), Decimal("0.86")),
        ],
        total_amount=Decimal("122.00"),
        rate_date="2025-11-05",
    )

    response = client.post(
        "/api/v1/currency/bulk-convert",
        json={"amounts": [{"amount": 100, "from": "usd"}, {"amount": 50, "from": "EUR"}], "to": "gbp"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["to_currency"] == "GBP"
    assert Decimal(data["total_amount"]) == Decimal("122.00")
    assert [c["from_currency"] for c in data["conversions"]] == ["USD", "EUR"]

    items, to_currency = conversion_service.bulk_convert.call_args[0]
    assert to_currency == "GBP"
    assert [(i.amount, i.from_currency) for i in items] == [
        (Decimal("100"), "USD"),
        (Decimal("50"), "EUR"),
    ]


def test_bulk_convert_failure_maps_to_422(client, conversion_service):
    conversion_service.bulk_convert.side_effect = BulkConversionError(
        "CHF", "GBP", "Rate not found for CHF/GBP"
    )

    response = client.post(
        "/api/v1/currency/bulk-convert",
        json={"amounts": [{"amount": 10, "from": "CHF"}], "to": "GBP"},
    )

    assert response.status_code == 422
    assert "Failed to get rate for CHF to GBP" in response.json()["detail"]


def test_bulk_convert_rejects_malformed_item_code(client, conversion_service):
    response = client.post(
        "/api/v1/currency/bulk-convert",
        json={"amounts": [{"amount": 10, "from": "DOLLAR"}], "to": "GBP"},
    )

    assert response.status_code == 400
    conversion_service.bulk_convert.assert_not_awaited()


def test_bulk_convert_requires_items(client):
    response = client.post("/api/v1/currency/bulk-convert", json={"amounts": [], "to": "GBP"})

    assert response.status_code == 422


def test_supported_currencies(client):
    response = client.get("/api/v1/currency/supported")

    assert response.status_code == 200
    currencies = response.json()["currencies"]
    assert [c["code"] for c in currencies] == ["EUR", "JPY"]
    assert currencies[1] == {"code": "JPY", "name": "Japanese Yen", "symbol": "¥", "decimal_places": 0}


def test_refresh(client, rate_updater):
    response = client.post("/api/v1/currency/refresh")

    assert response.status_code == 200
    assert response.json()["rates_updated"] == 4
    rate_updater.force_update.assert_awaited_once()


def test_refresh_failure_maps_to_503(client, rate_updater):
    rate_updater.force_update.side_effect = ProviderError("Frankfurter HTTP error 500")

    response = client.post("/api/v1/currency/refresh")

    assert response.status_code == 503


def test_status(client):
    response = client.get("/api/v1/currency/status")

    assert response.status_code == 200
    data = response.json()
    assert data["running"] is True
    assert data["interval_seconds"] == 3600.0
    assert data["last_error"] is None
    assert data["last_update"].startswith("2025-11-05T16:00:00")
