from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ConversionResponse(BaseModel):
	from_currency: str = Field(..., description='Source currency code')
	to_currency: str = Field(..., description='Target currency code')
	original_amount: Decimal = Field(..., description='Original amount requested')
	converted_amount: Decimal = Field(..., description='Converted amount')
	rate: Decimal = Field(..., description='Exchange rate used for conversion')
	rate_date: str = Field(..., description='Date of the most recent rate fetch')

	model_config = ConfigDict(
		json_schema_extra={
			'example': {
				'from_currency': 'USD',
				'to_currency': 'EUR',
				'original_amount': '100',
				'converted_amount': '92.00',
				'rate': '0.92',
				'rate_date': '2025-09-27',
			}
		}
	)


class RateResponse(BaseModel):
	from_currency: str = Field(..., description='Source currency code')
	to_currency: str = Field(..., description='Target currency code')
	rate: Decimal = Field(..., description='Current exchange rate')
	rate_date: str = Field(..., description='Date of the most recent rate fetch')


class RatesResponse(BaseModel):
	base: str = Field(..., description='Base currency code')
	rate_date: str = Field(..., description='Date of the most recent rate fetch')
	rates: dict[str, Decimal] = Field(..., description='Rates keyed by target currency')


class BulkConversionItemResponse(BaseModel):
	original_amount: Decimal
	from_currency: str
	converted_amount: Decimal
	rate: Decimal


class BulkConversionResponse(BaseModel):
	to_currency: str = Field(..., description='Target currency code')
	conversions: list[BulkConversionItemResponse]
	total_amount: Decimal = Field(..., description='Sum of all converted amounts')
	rate_date: str = Field(..., description='Date of the most recent rate fetch')


class SupportedCurrencyResponse(BaseModel):
	code: str
	name: str | None
	symbol: str
	decimal_places: int


class SupportedCurrenciesResponse(BaseModel):
	currencies: list[SupportedCurrencyResponse] = Field(description='Supported currencies')


class RefreshResponse(BaseModel):
	success: bool
	message: str
	rates_updated: int = Field(..., description='Number of rate rows written')


class UpdaterStatusResponse(BaseModel):
	running: bool
	interval_seconds: float
	last_update: datetime | None = None
	last_error: str | None = None
