from .requests import BulkConvertItemRequest, BulkConvertRequest
from .responses import (
	BulkConversionItemResponse,
	BulkConversionResponse,
	ConversionResponse,
	RateResponse,
	RatesResponse,
	RefreshResponse,
	SupportedCurrenciesResponse,
	SupportedCurrencyResponse,
	UpdaterStatusResponse,
)

__all__ = [
	'BulkConversionItemResponse',
	'BulkConversionResponse',
	'BulkConvertItemRequest',
	'BulkConvertRequest',
	'ConversionResponse',
	'RateResponse',
	'RatesResponse',
	'RefreshResponse',
	'SupportedCurrenciesResponse',
	'SupportedCurrencyResponse',
	'UpdaterStatusResponse',
]
