from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ExchangeRate:
    base_currency: str
    target_currency: str
    rate: Decimal
    fetched_at: datetime
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CachedRate:
    rate: Decimal
    fetched_at: datetime
    cached_at: datetime


@dataclass(frozen=True)
class CacheLookup(Generic[T]):
    """Outcome of a cache read.

    A miss and a failed remote read both leave ``value`` empty; ``error`` keeps
    the swallowed failure around for logging and tests.
    """

    value: T | None = None
    tier: str | None = None  # "local" or "remote"
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class LatestRates:
    base: str
    date: str
    rates: dict[str, Decimal]
    amount: Decimal = Decimal("1")


@dataclass(frozen=True)
class SupportedCurrency:
    code: str
    name: str | None
    symbol: str
    decimal_places: int


@dataclass(frozen=True)
class BulkConvertItem:
    amount: Decimal
    from_currency: str


@dataclass(frozen=True)
class BulkConvertResult:
    original_amount: Decimal
    from_currency: str
    converted_amount: Decimal
    rate: Decimal


@dataclass(frozen=True)
class BulkConvertResponse:
    to_currency: str
    conversions: list[BulkConvertResult]
    total_amount: Decimal
    rate_date: str


@dataclass(frozen=True)
class UpdaterStatus:
    running: bool
    interval: float  # seconds
    last_update: datetime | None = None
    last_error: str | None = None


CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "AUD": "A$",
    "CAD": "C$",
    "CHF": "Fr",
    "CNY": "¥",
    "HKD": "HK$",
    "NZD": "NZ$",
    "SEK": "kr",
    "KRW": "₩",
    "SGD": "S$",
    "NOK": "kr",
    "MXN": "MX$",
    "INR": "₹",
    "RUB": "₽",
    "ZAR": "R",
    "TRY": "₺",
    "BRL": "R$",
    "TWD": "NT$",
    "DKK": "kr",
    "PLN": "zł",
    "THB": "฿",
    "IDR": "Rp",
    "HUF": "Ft",
    "CZK": "Kč",
    "ILS": "₪",
    "CLP": "CLP$",
    "PHP": "₱",
    "AED": "د.إ",
    "COP": "COL$",
    "SAR": "﷼",
    "MYR": "RM",
    "RON": "lei",
    "BGN": "лв",
    "ISK": "kr",
}

# Everything not listed here uses two decimal places.
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "HUF", "TWD", "ISK", "CLP"})


def currency_symbol(code: str) -> str:
    return CURRENCY_SYMBOLS.get(code, code)


def currency_decimal_places(code: str) -> int:
    return 0 if code in ZERO_DECIMAL_CURRENCIES else 2
